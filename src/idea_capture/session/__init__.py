from .store import ConversationSession, Message, SessionStore, render_markdown

__all__ = ['ConversationSession', 'Message', 'SessionStore', 'render_markdown']
