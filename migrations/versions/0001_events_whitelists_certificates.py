"""events, whitelists and certificates"""

from alembic import op
import sqlalchemy as sa

revision = "0001_events_whitelists_certificates"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    bind = op.get_bind()
    inspector = sa.inspect(bind)

    if not inspector.has_table("events"):
        op.create_table(
            "events",
            sa.Column("id", sa.Integer, primary_key=True),
            sa.Column("event_name", sa.String(255), nullable=False, unique=True),
            sa.Column("cert_prefix", sa.String(64), nullable=False),
            sa.Column("expiry_date", sa.DateTime),
            sa.Column(
                "is_active", sa.Boolean, nullable=False, server_default=sa.true()
            ),
            sa.Column("template_url", sa.String(1024), nullable=False),
            sa.Column("name_x", sa.Float, nullable=False, server_default="50"),
            sa.Column("name_y", sa.Float, nullable=False, server_default="50"),
            sa.Column("cert_x", sa.Float, nullable=False, server_default="50"),
            sa.Column("cert_y", sa.Float, nullable=False, server_default="60"),
            sa.Column("created_at", sa.DateTime, server_default=sa.func.now()),
        )

    if not inspector.has_table("whitelists"):
        op.create_table(
            "whitelists",
            sa.Column("id", sa.Integer, primary_key=True),
            sa.Column(
                "event_id",
                sa.Integer,
                sa.ForeignKey("events.id", ondelete="CASCADE"),
                nullable=False,
            ),
            sa.Column("name", sa.String(255), nullable=False),
            sa.Column("created_at", sa.DateTime, server_default=sa.func.now()),
        )
        op.create_index(
            "uix_whitelists_event_name_lower",
            "whitelists",
            ["event_id", sa.text("lower(name)")],
            unique=True,
        )

    if not inspector.has_table("certificates"):
        op.create_table(
            "certificates",
            sa.Column("id", sa.Integer, primary_key=True),
            sa.Column(
                "event_id",
                sa.Integer,
                sa.ForeignKey("events.id", ondelete="CASCADE"),
                nullable=False,
            ),
            sa.Column("name", sa.String(255), nullable=False),
            sa.Column("cert_no", sa.String(128)),
            sa.Column("issued_at", sa.DateTime, server_default=sa.func.now()),
            sa.UniqueConstraint("cert_no", name="uq_certificates_cert_no"),
            sqlite_autoincrement=True,
        )
        op.create_index("ix_certificates_event_id", "certificates", ["event_id"])


def downgrade() -> None:
    bind = op.get_bind()
    inspector = sa.inspect(bind)

    if inspector.has_table("certificates"):
        op.drop_index("ix_certificates_event_id", table_name="certificates")
        op.drop_table("certificates")
    if inspector.has_table("whitelists"):
        op.drop_index("uix_whitelists_event_name_lower", table_name="whitelists")
        op.drop_table("whitelists")
    if inspector.has_table("events"):
        op.drop_table("events")
