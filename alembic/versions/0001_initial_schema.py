from alembic import op
import sqlalchemy as sa

# Alembic identifiers
revision = "0001_initial_schema"
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        "users",
        sa.Column("uid", sa.String(length=36), primary_key=True),
        sa.Column("email", sa.String(length=255), nullable=False),
        sa.Column("username", sa.String(length=100), nullable=True),
        sa.Column("hashed_password", sa.String(), nullable=False),
        sa.Column("first_name", sa.String(length=255), nullable=True),
        sa.Column("last_name", sa.String(length=255), nullable=True),
        sa.Column("time_zone", sa.String(length=64), nullable=True),
        sa.Column("email_verified", sa.Boolean(), nullable=False, server_default=sa.text("0")),
        sa.Column("role", sa.String(length=20), nullable=False),
        sa.Column("must_change_password", sa.Boolean(), nullable=False, server_default=sa.text("0")),
        sa.Column("removed", sa.Boolean(), nullable=False, server_default=sa.text("0")),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("created_by", sa.String(length=36), nullable=True),
        sa.CheckConstraint("role IN ('none', 'super_admin')", name="ck_users_role_allowed"),
    )
    op.create_index("ix_users_email", "users", ["email"], unique=True)
    # NULLs do not collide, so absent usernames stay allowed
    op.create_index("ix_users_username", "users", ["username"], unique=True)
    op.create_index("ix_users_role", "users", ["role"])

    op.create_table(
        "companies",
        sa.Column("company_id", sa.String(length=36), primary_key=True),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("created_by", sa.String(length=36), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("removed", sa.Boolean(), nullable=False, server_default=sa.text("0")),
    )
    op.create_index("ix_companies_name", "companies", ["name"])
    op.create_index("ix_companies_created_by", "companies", ["created_by"])

    op.create_table(
        "company_members",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column(
            "company_id",
            sa.String(length=36),
            sa.ForeignKey("companies.company_id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("uid", sa.String(length=36), nullable=False),
        sa.Column("email", sa.String(length=255), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=True),
        sa.Column("role", sa.String(length=20), nullable=False),
        sa.Column("joined_at", sa.DateTime(), nullable=False),
        sa.Column("position", sa.Integer(), nullable=False),
        sa.UniqueConstraint("company_id", "uid", name="uq_company_members_company_uid"),
        sa.CheckConstraint(
            "role IN ('member', 'creator', 'admin')", name="ck_company_members_role_allowed"
        ),
    )
    op.create_index("ix_company_members_company_id", "company_members", ["company_id"])
    op.create_index("ix_company_members_uid", "company_members", ["uid"])

    op.create_table(
        "creds",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column(
            "uid",
            sa.String(length=36),
            sa.ForeignKey("users.uid", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "company_id",
            sa.String(length=36),
            sa.ForeignKey("companies.company_id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("status", sa.String(length=20), nullable=False),
        sa.Column("role", sa.String(length=20), nullable=False),
        sa.Column("invited_by", sa.String(length=36), nullable=True),
        sa.Column("start_date", sa.DateTime(), nullable=False),
        sa.Column("last_login", sa.DateTime(), nullable=True),
        sa.Column("email", sa.String(length=255), nullable=True),
        sa.Column("name", sa.String(length=255), nullable=True),
        sa.Column("active", sa.Boolean(), nullable=False, server_default=sa.text("1")),
        sa.Column("enabled", sa.JSON(), nullable=False),
        sa.UniqueConstraint("uid", "company_id", name="uq_creds_uid_company"),
        sa.CheckConstraint(
            "status IN ('invited', 'accepted', 'inactive', 'removed')", name="ck_creds_status_allowed"
        ),
        sa.CheckConstraint("role IN ('member', 'creator', 'admin')", name="ck_creds_role_allowed"),
    )
    op.create_index("ix_creds_uid", "creds", ["uid"])
    op.create_index("ix_creds_company_id", "creds", ["company_id"])
    op.create_index("ix_creds_company_status", "creds", ["company_id", "status"])

    op.create_table(
        "invites",
        sa.Column("invite_id", sa.String(length=36), primary_key=True),
        sa.Column(
            "company_id",
            sa.String(length=36),
            sa.ForeignKey("companies.company_id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("email", sa.String(length=255), nullable=False),
        sa.Column("invited_by", sa.String(length=36), nullable=False),
        sa.Column("invited_at", sa.DateTime(), nullable=False),
        sa.Column("status", sa.String(length=20), nullable=False),
        sa.Column("accepted_at", sa.DateTime(), nullable=True),
        sa.Column("role", sa.String(length=20), nullable=False),
        sa.CheckConstraint(
            "status IN ('pending', 'accepted', 'declined')", name="ck_invites_status_allowed"
        ),
        sa.CheckConstraint("role IN ('member', 'creator')", name="ck_invites_role_allowed"),
    )
    op.create_index("ix_invites_company_id", "invites", ["company_id"])
    op.create_index("ix_invites_email", "invites", ["email"])
    op.create_index("ix_invites_email_status", "invites", ["email", "status"])

    op.create_table(
        "verification_codes",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("email", sa.String(length=255), nullable=False),
        sa.Column("code", sa.String(length=12), nullable=False),
        sa.Column("purpose", sa.String(length=20), nullable=False),
        sa.Column("password", sa.String(), nullable=True),
        sa.Column("hashed_password", sa.String(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("expires_at", sa.DateTime(), nullable=False),
        sa.Column("verified", sa.Boolean(), nullable=False, server_default=sa.text("0")),
        sa.Column("attempts", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.CheckConstraint(
            "purpose IN ('signup', 'password_reset')", name="ck_verification_codes_purpose_allowed"
        ),
    )
    op.create_index("ix_verification_codes_expires_at", "verification_codes", ["expires_at"])
    op.create_index("ix_verification_codes_email_code", "verification_codes", ["email", "code"])

    op.create_table(
        "actions",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("type", sa.String(length=100), nullable=False),
        sa.Column("collection", sa.String(length=255), nullable=False),
        sa.Column("read_type", sa.String(length=50), nullable=False),
        sa.Column("uid", sa.String(length=36), nullable=False),
        sa.Column("company_id", sa.String(length=36), nullable=False),
        sa.Column("count", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("host", sa.String(length=255), nullable=False),
        sa.Column("doc_id", sa.String(length=255), nullable=False),
        sa.Column("created", sa.BigInteger(), nullable=False),
        sa.Column("removed", sa.Boolean(), nullable=False, server_default=sa.text("0")),
    )
    op.create_index("ix_actions_type", "actions", ["type"])
    op.create_index("ix_actions_collection", "actions", ["collection"])
    op.create_index("ix_actions_uid", "actions", ["uid"])
    op.create_index("ix_actions_created", "actions", ["created"])
    op.create_index("ix_actions_company_created", "actions", ["company_id", "created"])


def downgrade():
    op.drop_table("actions")
    op.drop_table("verification_codes")
    op.drop_table("invites")
    op.drop_table("creds")
    op.drop_table("company_members")
    op.drop_table("companies")
    op.drop_table("users")
