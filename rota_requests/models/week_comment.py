"""
WeekComment model - free text a user leaves against one rota week
"""
from datetime import datetime


def create_week_comment_model(db):
    """Factory function to create WeekComment model with db instance"""

    class WeekComment(db.Model):
        __tablename__ = 'week_comments'

        id = db.Column(db.Integer, primary_key=True, autoincrement=True)
        week_id = db.Column(db.Integer, db.ForeignKey('rota_weeks.id'), nullable=False)
        user_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False)
        comment = db.Column(db.Text, nullable=False, default='')
        updated_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow,
                               onupdate=datetime.utcnow)

        __table_args__ = (
            db.UniqueConstraint('week_id', 'user_id', name='uq_week_comments_week_user'),
        )

        user = db.relationship('User', lazy='joined')

        def to_dict(self):
            return {
                'id': self.id,
                'week_id': self.week_id,
                'user_id': self.user_id,
                'user_name': self.user.name if self.user else None,
                'comment': self.comment,
                'updated_at': self.updated_at.isoformat() if self.updated_at else None,
            }

        def __repr__(self):
            return f'<WeekComment week={self.week_id} user={self.user_id}>'

    return WeekComment
