from datetime import datetime
from uuid import uuid4
import logging

from sqlalchemy import inspect, text

from . import db

logger = logging.getLogger(__name__)

VERDICTS = ("BUILD", "BAIL", "CAUTION")
MIN_SCORE = 0
MAX_SCORE = 10


def _uuid():
    return str(uuid4())


class AppIdea(db.Model):
    __tablename__ = 'app_ideas'

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    app_name = db.Column(db.Text, nullable=False)
    user_name = db.Column(db.Text)
    description = db.Column(db.Text, nullable=False)
    target_market = db.Column(db.Text, nullable=False)
    budget = db.Column(db.Text)
    features = db.Column(db.Text)
    competition = db.Column(db.Text)
    user_ip = db.Column(db.String(64))
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    results = db.relationship("ValidationResult", back_populates="app_idea")

    def __repr__(self):
        return f"<AppIdea {self.id} - {self.app_name[:30]}>"


class ValidationResult(db.Model):
    __tablename__ = 'validation_results'
    __table_args__ = (
        db.CheckConstraint(
            "verdict IN ('BUILD', 'BAIL', 'CAUTION')", name="ck_validation_results_verdict"
        ),
        db.CheckConstraint(
            f"score >= {MIN_SCORE} AND score <= {MAX_SCORE}", name="ck_validation_results_score"
        ),
    )

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    app_idea_id = db.Column(db.String(36), db.ForeignKey('app_ideas.id'), nullable=False, index=True)
    score = db.Column(db.Float, nullable=False)
    verdict = db.Column(db.String(16), nullable=False, index=True)
    strengths = db.Column(db.JSON, nullable=False, default=list)
    weaknesses = db.Column(db.JSON, nullable=False, default=list)
    opportunities = db.Column(db.JSON, nullable=False, default=list)
    detailed_analysis = db.Column(db.Text, nullable=False)
    action_items = db.Column(db.JSON, nullable=False, default=list)
    time_saved_hours = db.Column(db.Float, default=0)
    raw_payload = db.Column(db.JSON)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, index=True)

    app_idea = db.relationship("AppIdea", back_populates="results")

    def __repr__(self):
        return f"<ValidationResult {self.id} {self.verdict} {self.score}>"


class RateLimit(db.Model):
    __tablename__ = 'rate_limits'

    id = db.Column(db.Integer, primary_key=True)
    user_ip = db.Column(db.String(64), nullable=False, index=True)
    window_start = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)
    request_count = db.Column(db.Integer, nullable=False, default=1)
    last_request = db.Column(db.DateTime, default=datetime.utcnow)

    def __repr__(self):
        return f"<RateLimit {self.user_ip} x{self.request_count}>"


# Columns added after the first release, with the DDL used to backfill them
# on databases created before they existed.
_LATE_COLUMNS = {
    'app_ideas': {
        'user_ip': "VARCHAR(64)",
    },
    'validation_results': {
        'raw_payload': "JSON",
        'time_saved_hours': "FLOAT DEFAULT 0",
    },
}


def ensure_schema():
    """Create missing tables and add any late columns an older table lacks.

    Safe to call on every start: a second run finds nothing to do.
    """
    db.create_all()

    inspector = inspect(db.engine)
    existing_tables = set(inspector.get_table_names())
    missing = []
    for table, columns in _LATE_COLUMNS.items():
        if table not in existing_tables:
            continue
        existing_columns = {column['name'] for column in inspector.get_columns(table)}
        missing.extend((table, name, ddl) for name, ddl in columns.items() if name not in existing_columns)

    added = []
    if missing:
        with db.engine.begin() as connection:
            for table, name, ddl in missing:
                connection.execute(text(f"ALTER TABLE {table} ADD COLUMN {name} {ddl}"))
                added.append(f"{table}.{name}")

    if added:
        logger.info(f"Schema upgraded, added columns: {', '.join(added)}")
    return added
