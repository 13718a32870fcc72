"""
User-facing messages in English and Spanish

Lookups fall back to English when a key is missing in the requested
language, and to the key itself when it is unknown everywhere.
"""
from rota_requests import rules

MESSAGES = {
    'en': {
        'not_logged_in': 'Not logged in',
        'log_in_again': 'Missing session PIN. Log in again.',
        'pin_wrong': 'Wrong PIN.',
        'pin_format': 'PIN must be 4 digits.',
        'pin_updated': 'PIN updated.',
        'not_owner': 'You can only edit your own requests.',
        'admin_only': 'Admin only.',
        'week_closed': 'This week is closed for requests.',
        'notices_blocking': 'Read and acknowledge the pending notices before editing.',
        'locked_default': 'This day is locked by management.',
        'quota_exceeded': 'Max {limit} requests per week. Clear one day to pick another.',
        'priority_exhausted': 'No more strong preferences available.\nUse O or add a comment.',
        'save_failed': 'Save failed. Try again.',
        'saved': 'Saved ({key}) = {value}',
        'cleared': 'Cleared + saved ({key})',
        'lock_failed': 'Failed to update the lock.',
        'notices_failed': 'Notices could not be loaded.',
        'ack_failed': 'Failed to acknowledge the notice.',
        'failed_load_week_comments': 'Failed to load week comments.',
        'failed_save_week_comment': 'Failed to save comment.',
        'req_open': 'Requests are open',
        'req_close': 'Requests close',
        'req_close_soon': 'Requests close soon',
        'req_closed': 'Requests closed',
        'closed_at': 'Closed at {when}',
        'time_left': '{left} left',
    },
    'es': {
        'not_logged_in': 'Sin sesión',
        'log_in_again': 'Falta el PIN de la sesión. Vuelve a iniciar sesión.',
        'pin_wrong': 'PIN incorrecto.',
        'pin_format': 'El PIN debe tener 4 dígitos.',
        'pin_updated': 'PIN actualizado.',
        'not_owner': 'Solo puedes editar tus propias solicitudes.',
        'admin_only': 'Solo administración.',
        'week_closed': 'Esta semana está cerrada a solicitudes.',
        'notices_blocking': 'Lee y confirma los avisos pendientes antes de editar.',
        'locked_default': 'Este día está bloqueado por administración.',
        'quota_exceeded': 'Máximo {limit} solicitudes por semana. Borra un día para elegir otro.',
        'priority_exhausted': 'No quedan preferencias fuertes.\nUsa O o añade un comentario.',
        'save_failed': 'No se pudo guardar. Inténtalo de nuevo.',
        'saved': 'Guardado ({key}) = {value}',
        'cleared': 'Borrado y guardado ({key})',
        'lock_failed': 'No se pudo actualizar el bloqueo.',
        'notices_failed': 'No se pudieron cargar los avisos.',
        'ack_failed': 'No se pudo confirmar el aviso.',
        'failed_load_week_comments': 'No se pudieron cargar los comentarios.',
        'failed_save_week_comment': 'No se pudo guardar el comentario.',
        'req_open': 'Solicitudes abiertas',
        'req_close': 'Cierre de solicitudes',
        'req_close_soon': 'Cierre pronto',
        'req_closed': 'Solicitudes cerradas',
        'closed_at': 'Cerrado el {when}',
        'time_left': 'Quedan {left}',
    },
}


def t(message_key: str, lang: str = rules.DEFAULT_LANGUAGE, **kwargs) -> str:
    """Translate ``message_key`` into ``lang``, formatting any placeholders."""
    pack = MESSAGES[rules.normalize_language(lang)]
    text = pack.get(message_key) or MESSAGES['en'].get(message_key) or message_key
    return text.format(**kwargs) if kwargs else text
