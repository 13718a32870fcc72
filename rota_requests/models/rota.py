"""
Rota period models - periods, their Sunday-anchored weeks and the dates
belonging to each week
"""
from datetime import datetime
import sqlalchemy as sa


def create_rota_models(db):
    """Factory function to create RotaPeriod, RotaWeek and RotaDate models"""

    class RotaPeriod(db.Model):
        """
        Scheduling period (normally five weeks)

        ``closes_at`` is the request deadline as naive UTC. Once it passes,
        each week's ``open_after_close`` flag decides whether it stays
        editable.
        """
        __tablename__ = 'rota_periods'

        id = db.Column(db.Integer, primary_key=True, autoincrement=True)
        name = db.Column(db.String(100), nullable=True)
        start_date = db.Column(db.Date, nullable=False)
        end_date = db.Column(db.Date, nullable=False)
        is_active = db.Column(db.Boolean, nullable=False, default=False)
        is_hidden = db.Column(db.Boolean, nullable=False, default=False, server_default=sa.text('0'))
        closes_at = db.Column(db.DateTime, nullable=True)
        created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)

        weeks = db.relationship('RotaWeek', backref='period', lazy=True,
                                order_by='RotaWeek.week_start')

        def to_dict(self):
            return {
                'id': self.id,
                'name': self.name,
                'start_date': self.start_date.isoformat(),
                'end_date': self.end_date.isoformat(),
                'is_active': bool(self.is_active),
                'is_hidden': bool(self.is_hidden),
                'closes_at': self.closes_at.isoformat() if self.closes_at else None,
            }

        def __repr__(self):
            return f'<RotaPeriod {self.id}: {self.start_date} - {self.end_date}>'

    class RotaWeek(db.Model):
        """
        One Sunday-anchored week of a period

        ``open`` governs editing before the period deadline,
        ``open_after_close`` after it.
        """
        __tablename__ = 'rota_weeks'

        id = db.Column(db.Integer, primary_key=True, autoincrement=True)
        period_id = db.Column(db.Integer, db.ForeignKey('rota_periods.id'), nullable=False)
        week_start = db.Column(db.Date, nullable=False)
        open = db.Column(db.Boolean, nullable=False, default=True)
        open_after_close = db.Column(db.Boolean, nullable=False, default=False)

        __table_args__ = (
            db.UniqueConstraint('period_id', 'week_start', name='uq_rota_weeks_period_start'),
        )

        def to_dict(self):
            return {
                'id': self.id,
                'period_id': self.period_id,
                'week_start': self.week_start.isoformat(),
                'open': bool(self.open),
                'open_after_close': bool(self.open_after_close),
            }

        def __repr__(self):
            return f'<RotaWeek {self.id}: {self.week_start} open={self.open}>'

    class RotaDate(db.Model):
        """Calendar date belonging to exactly one week"""
        __tablename__ = 'rota_dates'

        id = db.Column(db.Integer, primary_key=True, autoincrement=True)
        date = db.Column(db.Date, nullable=False, unique=True)
        week_id = db.Column(db.Integer, db.ForeignKey('rota_weeks.id'), nullable=True)
        period_id = db.Column(db.Integer, db.ForeignKey('rota_periods.id'), nullable=False)

        __table_args__ = (
            db.Index('idx_rota_dates_period', 'period_id', 'date'),
        )

        week = db.relationship('RotaWeek', lazy='joined')

        def to_row(self):
            """Flat read-model row consumed by the calendar window builder"""
            return {
                'date': self.date.isoformat(),
                'week_id': self.week_id,
                'period_id': self.period_id,
                'week_open': self.week.open if self.week is not None else None,
                'week_open_after_close': self.week.open_after_close if self.week is not None else None,
            }

        def __repr__(self):
            return f'<RotaDate {self.date} week={self.week_id}>'

    return RotaPeriod, RotaWeek, RotaDate
