"""
Notice models - announcements to staff and their acknowledgments

Notices are authored by the notice administration tools. This service only
serves them to users and records acknowledgments. Bumping ``version`` makes
every earlier acknowledgment stale, so the notice is unread again.
"""
from datetime import datetime


def create_notice_models(db):
    """Factory function to create Notice and NoticeAcknowledgment models"""

    class Notice(db.Model):
        """Announcement targeted at everyone or at specific role tiers"""
        __tablename__ = 'notices'

        id = db.Column(db.Integer, primary_key=True, autoincrement=True)
        title = db.Column(db.String(200), nullable=False)
        body_en = db.Column(db.Text, nullable=True)
        body_es = db.Column(db.Text, nullable=True)
        version = db.Column(db.Integer, nullable=False, default=1)
        target_all = db.Column(db.Boolean, nullable=False, default=True)
        target_roles = db.Column(db.JSON, nullable=True)
        is_active = db.Column(db.Boolean, nullable=False, default=True)
        is_mandatory = db.Column(db.Boolean, nullable=False, default=True)
        created_by = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=True)
        created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)
        updated_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow,
                               onupdate=datetime.utcnow)

        acknowledgments = db.relationship('NoticeAcknowledgment', backref='notice',
                                          lazy=True, cascade='all, delete-orphan')

        def targets_role(self, role_id):
            if self.target_all or not self.target_roles:
                return True
            return int(role_id) in [int(r) for r in self.target_roles]

        def to_dict(self):
            return {
                'id': self.id,
                'title': self.title,
                'body_en': self.body_en,
                'body_es': self.body_es,
                'version': self.version,
                'target_all': bool(self.target_all),
                'target_roles': list(self.target_roles or []),
                'is_active': bool(self.is_active),
                'is_mandatory': bool(self.is_mandatory),
                'updated_at': self.updated_at.isoformat() if self.updated_at else None,
            }

        def __repr__(self):
            return f'<Notice {self.id} v{self.version}: {self.title}>'

    class NoticeAcknowledgment(db.Model):
        """Latest acknowledgment of a notice by a user"""
        __tablename__ = 'notice_acks'

        id = db.Column(db.Integer, primary_key=True, autoincrement=True)
        notice_id = db.Column(db.Integer, db.ForeignKey('notices.id'), nullable=False)
        user_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False)
        version = db.Column(db.Integer, nullable=False)
        acknowledged_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)

        __table_args__ = (
            db.UniqueConstraint('notice_id', 'user_id', name='uq_notice_acks_notice_user'),
        )

        def __repr__(self):
            return f'<NoticeAcknowledgment notice={self.notice_id} user={self.user_id} v{self.version}>'

    return Notice, NoticeAcknowledgment
