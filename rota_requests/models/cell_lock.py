"""
CellLock model - administrator lock on a single request cell

Locks stop staff from changing a cell that management has already settled
(for example a confirmed night cover). Administrators can still edit it.
"""
from datetime import datetime


def create_cell_lock_model(db):
    """Factory function to create CellLock model with db instance"""

    class CellLock(db.Model):
        """Lock on one (user, date) request cell with a bilingual reason"""
        __tablename__ = 'request_cell_locks'

        id = db.Column(db.Integer, primary_key=True, autoincrement=True)
        user_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False)
        date = db.Column(db.Date, nullable=False)
        reason_en = db.Column(db.Text, nullable=True)
        reason_es = db.Column(db.Text, nullable=True)
        locked_by = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=True)
        locked_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)

        __table_args__ = (
            db.UniqueConstraint('user_id', 'date', name='uq_cell_locks_user_date'),
            db.Index('idx_cell_locks_date', 'date'),
        )

        @classmethod
        def get_lock(cls, user_id, target_date):
            return cls.query.filter_by(user_id=user_id, date=target_date).first()

        @classmethod
        def is_locked(cls, user_id, target_date):
            return cls.get_lock(user_id, target_date) is not None

        def to_dict(self):
            return {
                'id': self.id,
                'user_id': self.user_id,
                'date': self.date.isoformat(),
                'reason_en': self.reason_en,
                'reason_es': self.reason_es,
                'locked_by': self.locked_by,
                'locked_at': self.locked_at.isoformat() if self.locked_at else None,
            }

        def __repr__(self):
            return f'<CellLock {self.user_id}_{self.date}>'

    return CellLock
