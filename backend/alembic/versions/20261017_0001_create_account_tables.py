"""Create account, moderation and audit tables."""

from collections.abc import Sequence

from alembic import op
import sqlalchemy as sa

revision: str = "20261017_0001"
down_revision: str | None = None
branch_labels: Sequence[str] | None = None
depends_on: Sequence[str] | None = None

TIMESTAMP_DEFAULT = sa.text("CURRENT_TIMESTAMP")
UID_SEQUENCE_NAME = "user_uid_seq"


def _timestamp(name: str, *, server_default: bool = True) -> sa.Column:
    return sa.Column(
        name,
        sa.DateTime(timezone=True),
        server_default=TIMESTAMP_DEFAULT if server_default else None,
        nullable=False,
    )


def _user_fk(name: str, *, ondelete: str = "CASCADE", nullable: bool = False) -> sa.Column:
    return sa.Column(
        name,
        sa.Integer(),
        sa.ForeignKey("users.id", ondelete=ondelete),
        nullable=nullable,
    )


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("username", sa.String(length=50), nullable=False),
        sa.Column("email", sa.String(length=255), nullable=False),
        sa.Column("password_hash", sa.String(length=255), nullable=True),
        sa.Column("uid", sa.Integer(), nullable=False),
        sa.Column(
            "role",
            sa.String(length=16),
            server_default=sa.text("'user'"),
            nullable=False,
        ),
        sa.Column(
            "is_verified",
            sa.Boolean(),
            server_default=sa.text("false"),
            nullable=False,
        ),
        sa.Column("discord_id", sa.String(length=32), nullable=True),
        sa.Column("discord_username", sa.String(length=100), nullable=True),
        sa.Column("discord_avatar", sa.String(length=255), nullable=True),
        _timestamp("created_at"),
        _timestamp("updated_at"),
        sa.UniqueConstraint("discord_id"),
    )
    op.create_index("ix_users_username", "users", ["username"], unique=True)
    op.create_index("ix_users_email", "users", ["email"], unique=True)
    op.create_index("ix_users_uid", "users", ["uid"], unique=True)

    op.create_table(
        "uid_allocations",
        sa.Column("uid", sa.Integer(), primary_key=True, autoincrement=True),
    )

    op.create_table(
        "profiles",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        _user_fk("user_id"),
        sa.Column("display_name", sa.String(length=50), nullable=True),
        sa.Column("bio", sa.Text(), nullable=True),
        sa.Column("location", sa.String(length=100), nullable=True),
        sa.Column("background_image", sa.String(length=500), nullable=True),
        sa.Column("background_video", sa.String(length=500), nullable=True),
        sa.Column("background_audio", sa.String(length=500), nullable=True),
        sa.Column("custom_cursor", sa.String(length=500), nullable=True),
        sa.Column(
            "background_effect",
            sa.String(length=50),
            server_default=sa.text("'none'"),
            nullable=False,
        ),
        sa.Column(
            "username_effect",
            sa.String(length=50),
            server_default=sa.text("'none'"),
            nullable=False,
        ),
        sa.Column("view_count", sa.Integer(), server_default=sa.text("0"), nullable=False),
        _timestamp("created_at"),
        _timestamp("updated_at"),
        sa.UniqueConstraint("user_id"),
    )

    op.create_table(
        "links",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        _user_fk("user_id"),
        sa.Column("title", sa.String(length=100), nullable=False),
        sa.Column("url", sa.String(length=500), nullable=False),
        sa.Column("position", sa.Integer(), server_default=sa.text("0"), nullable=False),
        sa.Column("clicks", sa.Integer(), server_default=sa.text("0"), nullable=False),
        _timestamp("created_at"),
    )
    op.create_index("ix_links_user_position", "links", ["user_id", "position"], unique=False)

    op.create_table(
        "verification_codes",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        _user_fk("user_id"),
        sa.Column("code", sa.String(length=6), nullable=False),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
        _timestamp("created_at"),
    )
    op.create_index(
        "ix_verification_codes_expires_at", "verification_codes", ["expires_at"], unique=False
    )
    op.create_index(
        "ix_verification_codes_user_code",
        "verification_codes",
        ["user_id", "code"],
        unique=False,
    )

    op.create_table(
        "password_reset_tokens",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        _user_fk("user_id"),
        sa.Column("token_hash", sa.String(length=64), nullable=False),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
        _timestamp("created_at"),
        sa.UniqueConstraint("token_hash"),
    )
    op.create_index(
        "ix_password_reset_tokens_user_id", "password_reset_tokens", ["user_id"], unique=False
    )
    op.create_index(
        "ix_password_reset_tokens_expires_at",
        "password_reset_tokens",
        ["expires_at"],
        unique=False,
    )

    op.create_table(
        "sessions",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        _user_fk("user_id"),
        sa.Column("token_hash", sa.String(length=64), nullable=False),
        sa.Column("issued_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
        sa.UniqueConstraint("token_hash"),
    )
    op.create_index("ix_sessions_expires_at", "sessions", ["expires_at"], unique=False)
    op.create_index(
        "ix_sessions_user_issued_at", "sessions", ["user_id", "issued_at"], unique=False
    )

    op.create_table(
        "banned_users",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        _user_fk("user_id"),
        sa.Column("reason", sa.String(length=500), nullable=False),
        _user_fk("banned_by", ondelete="SET NULL", nullable=True),
        _timestamp("banned_at"),
        sa.UniqueConstraint("user_id"),
    )

    op.create_table(
        "audit_log",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        _user_fk("admin_id", ondelete="SET NULL", nullable=True),
        sa.Column("action", sa.String(length=64), nullable=False),
        _user_fk("target_user_id", ondelete="SET NULL", nullable=True),
        sa.Column("details", sa.JSON(), nullable=False),
        _timestamp("created_at"),
    )
    op.create_index("ix_audit_log_action", "audit_log", ["action"], unique=False)
    op.create_index("ix_audit_log_created_at", "audit_log", ["created_at"], unique=False)

    op.create_table(
        "badges",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("name", sa.String(length=50), nullable=False),
        sa.Column(
            "description",
            sa.String(length=255),
            server_default=sa.text("''"),
            nullable=False,
        ),
        sa.Column("icon", sa.String(length=100), nullable=False),
        sa.Column("color", sa.String(length=20), nullable=False),
        _timestamp("created_at"),
        sa.UniqueConstraint("name"),
    )

    op.create_table(
        "user_badges",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        _user_fk("user_id"),
        sa.Column(
            "badge_id",
            sa.Integer(),
            sa.ForeignKey("badges.id", ondelete="CASCADE"),
            nullable=False,
        ),
        _user_fk("assigned_by", ondelete="SET NULL", nullable=True),
        sa.Column("display_order", sa.Integer(), server_default=sa.text("0"), nullable=False),
        sa.Column(
            "is_monochrome",
            sa.Boolean(),
            server_default=sa.text("false"),
            nullable=False,
        ),
        _timestamp("assigned_at"),
        sa.UniqueConstraint("user_id", "badge_id", name="uq_user_badges_user_badge"),
    )
    op.create_index("ix_user_badges_user_id", "user_badges", ["user_id"], unique=False)
    op.create_index("ix_user_badges_badge_id", "user_badges", ["badge_id"], unique=False)

    bind = op.get_bind()
    if bind.dialect.name == "postgresql":
        # Runtime allocation also creates it lazily; this keeps fresh databases explicit.
        op.execute(f"CREATE SEQUENCE IF NOT EXISTS {UID_SEQUENCE_NAME} START 1")


def downgrade() -> None:
    bind = op.get_bind()
    if bind.dialect.name == "postgresql":
        op.execute(f"DROP SEQUENCE IF EXISTS {UID_SEQUENCE_NAME}")

    op.drop_index("ix_user_badges_badge_id", table_name="user_badges")
    op.drop_index("ix_user_badges_user_id", table_name="user_badges")
    op.drop_table("user_badges")
    op.drop_table("badges")
    op.drop_index("ix_audit_log_created_at", table_name="audit_log")
    op.drop_index("ix_audit_log_action", table_name="audit_log")
    op.drop_table("audit_log")
    op.drop_table("banned_users")
    op.drop_index("ix_sessions_user_issued_at", table_name="sessions")
    op.drop_index("ix_sessions_expires_at", table_name="sessions")
    op.drop_table("sessions")
    op.drop_index("ix_password_reset_tokens_expires_at", table_name="password_reset_tokens")
    op.drop_index("ix_password_reset_tokens_user_id", table_name="password_reset_tokens")
    op.drop_table("password_reset_tokens")
    op.drop_index("ix_verification_codes_user_code", table_name="verification_codes")
    op.drop_index("ix_verification_codes_expires_at", table_name="verification_codes")
    op.drop_table("verification_codes")
    op.drop_index("ix_links_user_position", table_name="links")
    op.drop_table("links")
    op.drop_table("profiles")
    op.drop_table("uid_allocations")
    op.drop_index("ix_users_uid", table_name="users")
    op.drop_index("ix_users_email", table_name="users")
    op.drop_index("ix_users_username", table_name="users")
    op.drop_table("users")
