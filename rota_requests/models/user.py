"""
User model - staff members who enter requests, and the administrators who
manage the rota. Users are maintained by the user administration tools; this
service only reads them and verifies their PINs.
"""
from datetime import datetime
from werkzeug.security import generate_password_hash, check_password_hash

from rota_requests.rules import RoleTier, normalize_language


def create_user_model(db):
    """Factory function to create User model with db instance"""

    class User(db.Model):
        """
        Staff member on the ward rota

        ``role_id`` is one of RoleTier (charge nurse, staff nurse, nursing
        assistant) and drives roster sections and notice targeting.
        """
        __tablename__ = 'users'

        id = db.Column(db.Integer, primary_key=True, autoincrement=True)
        name = db.Column(db.String(100), nullable=False)
        role_id = db.Column(db.Integer, nullable=False, default=RoleTier.STAFF_NURSE)
        is_admin = db.Column(db.Boolean, nullable=False, default=False)
        is_active = db.Column(db.Boolean, nullable=False, default=True)
        display_order = db.Column(db.Integer, nullable=False, default=0)
        preferred_lang = db.Column(db.String(2), nullable=False, default='en')
        pin_hash = db.Column(db.String(255), nullable=True)
        created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)

        __table_args__ = (
            db.Index('idx_users_role_order', 'role_id', 'display_order'),
        )

        def set_pin(self, pin):
            self.pin_hash = generate_password_hash(pin)

        def check_pin(self, pin):
            """Return True when ``pin`` matches the stored hash."""
            if not self.pin_hash or not pin:
                return False
            return check_password_hash(self.pin_hash, str(pin))

        @property
        def language(self):
            return normalize_language(self.preferred_lang)

        def to_dict(self):
            return {
                'id': self.id,
                'name': self.name,
                'role_id': self.role_id,
                'is_admin': bool(self.is_admin),
                'is_active': bool(self.is_active),
                'display_order': self.display_order,
                'preferred_lang': self.language,
            }

        def __repr__(self):
            return f'<User {self.id}: {self.name}>'

    return User
