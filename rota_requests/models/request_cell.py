"""
RequestCell model - one user's preference for one date
"""
from datetime import datetime


def create_request_cell_model(db):
    """Factory function to create RequestCell model with db instance"""

    class RequestCell(db.Model):
        """
        Preference entry keyed by (user, date)

        ``value`` is a preference code or the off marker ``O``.
        ``important_rank`` (1 or 2) marks a strongly preferred day off and is
        only stored together with ``O``.
        """
        __tablename__ = 'requests'

        id = db.Column(db.Integer, primary_key=True, autoincrement=True)
        user_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False)
        date = db.Column(db.Date, nullable=False)
        value = db.Column(db.String(8), nullable=False)
        important_rank = db.Column(db.Integer, nullable=True)
        created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)
        updated_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow,
                               onupdate=datetime.utcnow)

        __table_args__ = (
            db.UniqueConstraint('user_id', 'date', name='uq_requests_user_date'),
            db.Index('idx_requests_date', 'date'),
        )

        user = db.relationship('User', backref='requests', lazy=True)

        def to_dict(self):
            return {
                'id': self.id,
                'user_id': self.user_id,
                'date': self.date.isoformat(),
                'value': self.value,
                'important_rank': self.important_rank,
            }

        def __repr__(self):
            return f'<RequestCell {self.user_id}_{self.date}={self.value}>'

    return RequestCell
