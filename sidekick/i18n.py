"""
UI strings for English and Dutch.

Keys with a ``_plural`` twin are counted strings: ``Translator`` picks the
plural form when ``count != 1``.
"""

from __future__ import annotations

from typing import Literal

Language = Literal["en", "nl"]

LANGUAGES: tuple[str, ...] = ("en", "nl")
DEFAULT_LANGUAGE: Language = "en"

STRINGS: dict[str, dict[str, str]] = {
    "en": {
        # Labels
        "new_chat": "New Chat",
        "conversations": "Conversations",
        "archived_conversations": "Archived",
        "settings": "Settings",
        "no_conversations_found": "No conversations found",
        "no_conversations_yet": "No conversations yet",
        "no_messages_found": "No messages found",
        "conversations_selected": "{count} conversation selected",
        "conversations_selected_plural": "{count} conversations selected",
        # Messages
        "thinking": "Thinking...",
        "loading_conversation": "Loading conversation...",
        "type_your_message": "Type your message...  (/help for commands)",
        "suggested_questions": "Suggested questions:",
        "question1": "What is the Boomerang Collective?",
        "question2": "How do Boomerang meetings work?",
        "question3": "What training resources are available?",
        "question4": "How can I join the Collective?",
        "initial_message": (
            "Hi, I'm Boomerang Sidekick. I can help you understand Boomerang "
            "training, meetings, and how the Collective works."
        ),
        # Roles
        "you": "You",
        "assistant_name": "Boomerang Sidekick",
        # Confirmations
        "delete_conversation_confirm": "Are you sure you want to delete this conversation?",
        "delete_bulk_confirm": "Are you sure you want to delete {count} conversation(s)?",
        "delete_message_confirm": "Are you sure you want to delete this message?",
        # Toasts
        "copied_to_clipboard": "Copied to clipboard!",
        "failed_to_copy": "Failed to copy",
        "conversation_deleted": "Conversation deleted",
        "message_deleted": "Message deleted",
        "message_updated": "Message updated",
        "message_not_found": "Message not found",
        "pinned": "Pinned",
        "unpinned": "Unpinned",
        "archived": "Archived",
        "unarchived": "Unarchived",
        "no_conversations_selected": "No conversations selected",
        "conversations_deleted": "{count} conversation(s) deleted",
        "conversations_archived": "{count} conversation(s) archived",
        "conversation_exported": "Conversation exported",
        "error_toast": "Error sending message",
        "dark_mode_on": "Dark mode on",
        "dark_mode_off": "Dark mode off",
        "language_changed": "Language set to English",
        # Time
        "just_now": "Just now",
        "minutes_ago": "{count}m ago",
        "hours_ago": "{count}h ago",
        "days_ago": "{count}d ago",
        # Errors
        "error_sending_message": (
            "Sorry, there was an error processing your request. Please try again."
        ),
        "network_error": "Network error. Please check your connection and try again.",
        "webhook_not_found": "Webhook not found. Please check the webhook URL configuration.",
        "auth_error": "Authentication error. Please check webhook permissions.",
        "server_error": (
            "Server error. The n8n workflow may have an issue. Check the logs for details."
        ),
        "server_error_with_code": "Server error ({code}). Check the logs for details.",
        # Fallback
        "new_conversation": "New Conversation",
    },
    "nl": {
        # Labels
        "new_chat": "Nieuwe Chat",
        "conversations": "Gesprekken",
        "archived_conversations": "Gearchiveerd",
        "settings": "Instellingen",
        "no_conversations_found": "Geen gesprekken gevonden",
        "no_conversations_yet": "Nog geen gesprekken",
        "no_messages_found": "Geen berichten gevonden",
        "conversations_selected": "{count} gesprek geselecteerd",
        "conversations_selected_plural": "{count} gesprekken geselecteerd",
        # Messages
        "thinking": "Denken...",
        "loading_conversation": "Gesprek laden...",
        "type_your_message": "Typ je bericht...  (/help voor commando's)",
        "suggested_questions": "Voorgestelde vragen:",
        "question1": "Wat is het Boomerang Collectief?",
        "question2": "Hoe werken Boomerang vergaderingen?",
        "question3": "Welke trainingsbronnen zijn beschikbaar?",
        "question4": "Hoe kan ik meedoen aan het Collectief?",
        "initial_message": (
            "Hoi, ik ben Boomerang Sidekick. Ik kan je helpen om Boomerang training, "
            "vergaderingen en hoe het Collectief werkt te begrijpen."
        ),
        # Roles
        "you": "Jij",
        "assistant_name": "Boomerang Sidekick",
        # Confirmations
        "delete_conversation_confirm": "Weet je zeker dat je dit gesprek wilt verwijderen?",
        "delete_bulk_confirm": "Weet je zeker dat je {count} gesprek wilt verwijderen?",
        "delete_bulk_confirm_plural": "Weet je zeker dat je {count} gesprekken wilt verwijderen?",
        "delete_message_confirm": "Weet je zeker dat je dit bericht wilt verwijderen?",
        # Toasts
        "copied_to_clipboard": "Gekopieerd naar klembord!",
        "failed_to_copy": "Kopiëren mislukt",
        "conversation_deleted": "Gesprek verwijderd",
        "message_deleted": "Bericht verwijderd",
        "message_updated": "Bericht bijgewerkt",
        "message_not_found": "Bericht niet gevonden",
        "pinned": "Vastgezet",
        "unpinned": "Losgemaakt",
        "archived": "Gearchiveerd",
        "unarchived": "Gedearchiveerd",
        "no_conversations_selected": "Geen gesprekken geselecteerd",
        "conversations_deleted": "{count} gesprek verwijderd",
        "conversations_deleted_plural": "{count} gesprekken verwijderd",
        "conversations_archived": "{count} gesprek gearchiveerd",
        "conversations_archived_plural": "{count} gesprekken gearchiveerd",
        "conversation_exported": "Gesprek geëxporteerd",
        "error_toast": "Fout bij verzenden van bericht",
        "dark_mode_on": "Donkere modus aan",
        "dark_mode_off": "Donkere modus uit",
        "language_changed": "Taal ingesteld op Nederlands",
        # Time
        "just_now": "Zojuist",
        "minutes_ago": "{count} min geleden",
        "hours_ago": "{count} u geleden",
        "days_ago": "{count} d geleden",
        # Errors
        "error_sending_message": (
            "Sorry, er is een fout opgetreden bij het verwerken van je verzoek. "
            "Probeer het opnieuw."
        ),
        "network_error": "Netwerkfout. Controleer je verbinding en probeer het opnieuw.",
        "webhook_not_found": "Webhook niet gevonden. Controleer de webhook URL configuratie.",
        "auth_error": "Authenticatiefout. Controleer de webhook rechten.",
        "server_error": (
            "Serverfout. De n8n workflow heeft mogelijk een probleem. "
            "Controleer de logs voor details."
        ),
        "server_error_with_code": "Serverfout ({code}). Controleer de logs voor details.",
        # Fallback
        "new_conversation": "Nieuw Gesprek",
    },
}


def normalize_language(value: object) -> Language | None:
    """Return ``value`` if it names a supported language, else None."""
    if value in LANGUAGES:
        return value  # type: ignore[return-value]
    return None


class Translator:
    """Looks up and formats UI strings for one language."""

    def __init__(self, language: str = DEFAULT_LANGUAGE) -> None:
        self.language: Language = normalize_language(language) or DEFAULT_LANGUAGE

    def __call__(self, key: str, count: int | None = None, **kwargs: object) -> str:
        table = STRINGS[self.language]
        template = table.get(key)
        if template is None:
            template = STRINGS[DEFAULT_LANGUAGE][key]
        if count is not None and count != 1:
            template = table.get(f"{key}_plural", template)
        return template.format(count=count, **kwargs)

    def suggested_questions(self) -> list[str]:
        return [self(f"question{i}") for i in range(1, 5)]
