"""
Database models for the Rota Requests service
Centralizes all SQLAlchemy model imports using factory pattern
"""
from .user import create_user_model
from .rota import create_rota_models
from .request_cell import create_request_cell_model
from .cell_lock import create_cell_lock_model
from .notice import create_notice_models
from .week_comment import create_week_comment_model

# Declarative classes can only be mapped once per metadata, so repeated
# application factories share the first set.
_initialized = {}


def init_models(db):
    """
    Initialize all models with the database instance

    Args:
        db: SQLAlchemy database instance

    Returns:
        dict: Dictionary containing all model classes
    """
    if id(db) in _initialized:
        return dict(_initialized[id(db)])

    User = create_user_model(db)
    RotaPeriod, RotaWeek, RotaDate = create_rota_models(db)
    RequestCell = create_request_cell_model(db)
    CellLock = create_cell_lock_model(db)
    Notice, NoticeAcknowledgment = create_notice_models(db)
    WeekComment = create_week_comment_model(db)

    models = {
        'User': User,
        'RotaPeriod': RotaPeriod,
        'RotaWeek': RotaWeek,
        'RotaDate': RotaDate,
        'RequestCell': RequestCell,
        'CellLock': CellLock,
        'Notice': Notice,
        'NoticeAcknowledgment': NoticeAcknowledgment,
        'WeekComment': WeekComment,
    }
    _initialized[id(db)] = models
    return dict(models)


__all__ = [
    'init_models',
    'create_user_model',
    'create_rota_models',
    'create_request_cell_model',
    'create_cell_lock_model',
    'create_notice_models',
    'create_week_comment_model',
    # Model registry exports
    'model_registry',
    'get_models',
    'get_db'
]

from .registry import model_registry, get_models, get_db
