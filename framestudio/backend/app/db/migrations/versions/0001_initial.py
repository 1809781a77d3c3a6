from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

revision = "0001_initial"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    user_role = postgresql.ENUM("admin", "instructor", "student", name="userrole", create_type=False)
    user_role.create(op.get_bind(), checkfirst=True)
    user_status = postgresql.ENUM("active", "pending_activation", "inactive", name="userstatus", create_type=False)
    user_status.create(op.get_bind(), checkfirst=True)

    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("email", sa.String(length=255), nullable=False, unique=True),
        sa.Column("first_name", sa.String(length=128)),
        sa.Column("last_name", sa.String(length=128)),
        sa.Column("phone", sa.String(length=32)),
        sa.Column("password_hash", sa.String(length=255), nullable=False),
        sa.Column("role", user_role, server_default="student"),
        sa.Column("status", user_status, server_default="active"),
        sa.Column("activation_token", sa.String(length=128)),
        sa.Column("activation_token_expires_at", sa.DateTime(timezone=True)),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("last_login_at", sa.DateTime(timezone=True)),
    )

    op.create_table(
        "class_types",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("name", sa.String(length=128), nullable=False, unique=True),
        sa.Column("description", sa.Text()),
        sa.Column("duration_min", sa.Integer(), server_default="120"),
        sa.Column("default_price", sa.Numeric(10, 2), server_default="0"),
        sa.Column("is_active", sa.Boolean(), server_default=sa.true()),
    )

    class_status = postgresql.ENUM("scheduled", "full", "cancelled", "completed", name="classstatus", create_type=False)
    class_status.create(op.get_bind(), checkfirst=True)

    op.create_table(
        "classes",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("class_type_id", sa.Integer(), sa.ForeignKey("class_types.id", ondelete="CASCADE")),
        sa.Column("instructor_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="SET NULL")),
        sa.Column("starts_at", sa.DateTime(timezone=True), index=True),
        sa.Column("ends_at", sa.DateTime(timezone=True)),
        sa.Column("capacity", sa.Integer(), nullable=False, server_default="6"),
        sa.Column("small_frame_capacity", sa.Integer(), server_default="2"),
        sa.Column("medium_frame_capacity", sa.Integer(), server_default="3"),
        sa.Column("large_frame_capacity", sa.Integer(), server_default="1"),
        sa.Column("status", class_status, server_default="scheduled"),
        sa.Column("notes", sa.Text()),
        sa.CheckConstraint("capacity > 0", name="ck_class_capacity_positive"),
    )

    op.create_table(
        "package_types",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("name", sa.String(length=128), nullable=False),
        sa.Column("description", sa.Text()),
        sa.Column("credits", sa.Integer(), nullable=False),
        sa.Column("price", sa.Numeric(10, 2), nullable=False),
        sa.Column("validity_days", sa.Integer()),
        sa.Column("class_type_id", sa.Integer(), sa.ForeignKey("class_types.id")),
        sa.Column("is_active", sa.Boolean(), server_default=sa.true()),
    )

    package_status = postgresql.ENUM(
        "active", "used_up", "expired", "pending_payment", name="packagestatus", create_type=False
    )
    package_status.create(op.get_bind(), checkfirst=True)

    op.create_table(
        "packages",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="CASCADE"), index=True),
        sa.Column("package_type_id", sa.Integer(), sa.ForeignKey("package_types.id")),
        sa.Column("name", sa.String(length=128), nullable=False),
        sa.Column("total_credits", sa.Integer(), nullable=False),
        sa.Column("used_credits", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("status", package_status, server_default="active"),
        sa.Column("price", sa.Numeric(10, 2), server_default="0"),
        sa.Column("purchased_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("expires_at", sa.DateTime(timezone=True)),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.CheckConstraint("used_credits >= 0", name="ck_package_used_credits_non_negative"),
        sa.CheckConstraint("used_credits <= total_credits", name="ck_package_used_credits_within_total"),
    )

    frame_size = postgresql.ENUM("small", "medium", "large", name="framesize", create_type=False)
    frame_size.create(op.get_bind(), checkfirst=True)
    reservation_status = postgresql.ENUM(
        "confirmed", "checked_in", "completed", "no_show", "cancelled", name="reservationstatus", create_type=False
    )
    reservation_status.create(op.get_bind(), checkfirst=True)

    op.create_table(
        "reservations",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("uuid", sa.String(length=32), nullable=False, unique=True),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="CASCADE")),
        sa.Column("class_id", sa.Integer(), sa.ForeignKey("classes.id", ondelete="CASCADE"), index=True),
        sa.Column("package_id", sa.Integer(), sa.ForeignKey("packages.id", ondelete="SET NULL")),
        sa.Column("frame_size", frame_size, server_default="medium"),
        sa.Column("status", reservation_status, server_default="confirmed"),
        sa.Column("reserved_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("checked_in_at", sa.DateTime(timezone=True)),
        sa.Column("cancelled_at", sa.DateTime(timezone=True)),
        sa.Column("cancellation_reason", sa.String(length=255)),
        sa.Column("notes", sa.Text()),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.UniqueConstraint("user_id", "class_id", name="uq_reservation_user_class"),
    )

    op.create_table(
        "waitlist",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="CASCADE")),
        sa.Column("class_id", sa.Integer(), sa.ForeignKey("classes.id", ondelete="CASCADE"), index=True),
        sa.Column("frame_size", frame_size, server_default="medium"),
        sa.Column("priority", sa.Integer(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.UniqueConstraint("user_id", "class_id", name="uq_waitlist_user_class"),
    )

    payment_status = postgresql.ENUM(
        "pending", "completed", "failed", "refunded", "cancelled", name="paymentstatus", create_type=False
    )
    payment_status.create(op.get_bind(), checkfirst=True)
    payment_method = postgresql.ENUM("cash", "card", "transfer", "online", name="paymentmethod", create_type=False)
    payment_method.create(op.get_bind(), checkfirst=True)

    op.create_table(
        "payments",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="CASCADE"), index=True),
        sa.Column("package_id", sa.Integer(), sa.ForeignKey("packages.id", ondelete="SET NULL")),
        sa.Column("reservation_id", sa.Integer(), sa.ForeignKey("reservations.id", ondelete="SET NULL")),
        sa.Column("amount", sa.Numeric(10, 2)),
        sa.Column("currency", sa.CHAR(length=3), server_default="USD"),
        sa.Column("method", payment_method, server_default="cash"),
        sa.Column("status", payment_status, server_default="pending"),
        sa.Column("description", sa.String(length=255)),
        sa.Column("paid_at", sa.DateTime(timezone=True)),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )

    actor_type = postgresql.ENUM("student", "admin", "instructor", "system", name="actortype", create_type=False)
    actor_type.create(op.get_bind(), checkfirst=True)

    op.create_table(
        "audit_logs",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("actor_type", actor_type),
        sa.Column("actor_id", sa.Integer()),
        sa.Column("action", sa.String(length=255)),
        sa.Column("table_name", sa.String(length=64)),
        sa.Column("record_id", sa.Integer()),
        sa.Column("old_values", sa.JSON()),
        sa.Column("new_values", sa.JSON()),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )


def downgrade() -> None:
    op.drop_table("audit_logs")
    op.drop_table("payments")
    op.drop_table("waitlist")
    op.drop_table("reservations")
    op.drop_table("packages")
    op.drop_table("package_types")
    op.drop_table("classes")
    op.drop_table("class_types")
    op.drop_table("users")
    for name in (
        "actortype",
        "paymentmethod",
        "paymentstatus",
        "reservationstatus",
        "framesize",
        "packagestatus",
        "classstatus",
        "userstatus",
        "userrole",
    ):
        postgresql.ENUM(name=name).drop(op.get_bind(), checkfirst=True)
