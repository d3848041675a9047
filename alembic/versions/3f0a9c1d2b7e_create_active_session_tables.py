from alembic import op
import sqlalchemy as sa

revision = '3f0a9c1d2b7e'
down_revision = None
branch_labels = None
depends_on = None

scheduled_checkout_status_enum = sa.Enum(
    'pending', 'executed', 'cancelled',
    name='scheduled_checkout_status',
)


def _timestamps(updated=True):
    cols = [sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False)]
    if updated:
        cols.append(sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False))
    return cols


def upgrade():
    # ─── Reference data ────────────────────────────────────────────
    op.create_table(
        'rooms',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('name', sa.String(length=100), nullable=False, unique=True),
        sa.Column('capacity', sa.Integer(), nullable=True),
        sa.Column('category', sa.String(length=50), nullable=True),
        *_timestamps(),
    )
    op.create_table(
        'education_groups',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('name', sa.String(length=100), nullable=False),
        *_timestamps(updated=False),
    )
    op.create_table(
        'students',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('first_name', sa.String(length=100), nullable=False),
        sa.Column('last_name', sa.String(length=100), nullable=False),
        sa.Column('school_class', sa.String(length=20), nullable=False, server_default=''),
        sa.Column('education_group_id', sa.Integer(), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(['education_group_id'], ['education_groups.id'], ondelete='SET NULL'),
    )
    op.create_table(
        'staff',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('account_id', sa.Integer(), nullable=True, unique=True),
        sa.Column('first_name', sa.String(length=100), nullable=False),
        sa.Column('last_name', sa.String(length=100), nullable=False),
        *_timestamps(),
    )
    op.create_table(
        'activity_groups',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('name', sa.String(length=100), nullable=False),
        sa.Column('category', sa.String(length=50), nullable=True),
        *_timestamps(updated=False),
    )

    # ─── Sessions ──────────────────────────────────────────────────
    op.create_table(
        'active_groups',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('group_id', sa.Integer(), nullable=False),
        sa.Column('room_id', sa.Integer(), nullable=False),
        sa.Column('start_time', sa.DateTime(timezone=True), nullable=False),
        sa.Column('end_time', sa.DateTime(timezone=True), nullable=True),
        sa.Column('supervision_version', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('last_activity', sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(['group_id'], ['activity_groups.id']),
        sa.ForeignKeyConstraint(['room_id'], ['rooms.id']),
    )
    op.create_index('ix_active_groups_group_id', 'active_groups', ['group_id'])
    op.create_index('ix_active_groups_room_id', 'active_groups', ['room_id'])
    op.create_index(
        'uq_active_groups_open_room', 'active_groups', ['room_id'], unique=True,
        postgresql_where=sa.text('end_time IS NULL'), sqlite_where=sa.text('end_time IS NULL'),
    )

    op.create_table(
        'visits',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('student_id', sa.Integer(), nullable=False),
        sa.Column('active_group_id', sa.Integer(), nullable=False),
        sa.Column('entry_time', sa.DateTime(timezone=True), nullable=False),
        sa.Column('exit_time', sa.DateTime(timezone=True), nullable=True),
        sa.Column('checked_in_by', sa.Integer(), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(['student_id'], ['students.id']),
        sa.ForeignKeyConstraint(['active_group_id'], ['active_groups.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['checked_in_by'], ['staff.id'], ondelete='SET NULL'),
    )
    op.create_index('ix_visits_student_id', 'visits', ['student_id'])
    op.create_index('ix_visits_active_group_id', 'visits', ['active_group_id'])
    op.create_index(
        'uq_visits_open_student', 'visits', ['student_id'], unique=True,
        postgresql_where=sa.text('exit_time IS NULL'), sqlite_where=sa.text('exit_time IS NULL'),
    )

    op.create_table(
        'group_supervisors',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('staff_id', sa.Integer(), nullable=False),
        sa.Column('group_id', sa.Integer(), nullable=False),
        sa.Column('role', sa.String(length=50), nullable=False, server_default='supervisor'),
        sa.Column('start_date', sa.DateTime(timezone=True), nullable=False),
        sa.Column('end_date', sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(['staff_id'], ['staff.id']),
        sa.ForeignKeyConstraint(['group_id'], ['active_groups.id'], ondelete='CASCADE'),
    )
    op.create_index('ix_group_supervisors_staff_id', 'group_supervisors', ['staff_id'])
    op.create_index('ix_group_supervisors_group_id', 'group_supervisors', ['group_id'])
    op.create_index(
        'uq_group_supervisors_active_pair', 'group_supervisors', ['staff_id', 'group_id'], unique=True,
        postgresql_where=sa.text('end_date IS NULL'), sqlite_where=sa.text('end_date IS NULL'),
    )

    # ─── Combinations ──────────────────────────────────────────────
    op.create_table(
        'combined_groups',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('start_time', sa.DateTime(timezone=True), nullable=False),
        sa.Column('end_time', sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
    )
    op.create_table(
        'group_mappings',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('active_group_id', sa.Integer(), nullable=False),
        sa.Column('active_combined_group_id', sa.Integer(), nullable=False),
        *_timestamps(updated=False),
        sa.ForeignKeyConstraint(['active_group_id'], ['active_groups.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['active_combined_group_id'], ['combined_groups.id'], ondelete='CASCADE'),
        sa.UniqueConstraint('active_group_id', 'active_combined_group_id', name='uq_group_mappings_pair'),
    )
    op.create_index('ix_group_mappings_active_group_id', 'group_mappings', ['active_group_id'])
    op.create_index('ix_group_mappings_active_combined_group_id', 'group_mappings', ['active_combined_group_id'])

    # ─── Scheduled checkouts ───────────────────────────────────────
    op.create_table(
        'scheduled_checkouts',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('student_id', sa.Integer(), nullable=False),
        sa.Column('scheduled_by', sa.Integer(), nullable=False),
        sa.Column('scheduled_for', sa.DateTime(timezone=True), nullable=False),
        sa.Column('reason', sa.String(length=255), nullable=True),
        sa.Column('status', scheduled_checkout_status_enum, nullable=False, server_default='pending'),
        sa.Column('executed_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('cancelled_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('cancelled_by', sa.Integer(), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(['student_id'], ['students.id']),
        sa.ForeignKeyConstraint(['scheduled_by'], ['staff.id']),
        sa.ForeignKeyConstraint(['cancelled_by'], ['staff.id']),
    )
    op.create_index('ix_scheduled_checkouts_student_id', 'scheduled_checkouts', ['student_id'])
    op.create_index('ix_scheduled_checkouts_due', 'scheduled_checkouts', ['status', 'scheduled_for'])


def downgrade():
    op.drop_table('scheduled_checkouts')
    scheduled_checkout_status_enum.drop(op.get_bind(), checkfirst=True)
    op.drop_table('group_mappings')
    op.drop_table('combined_groups')
    op.drop_table('group_supervisors')
    op.drop_table('visits')
    op.drop_table('active_groups')
    op.drop_table('activity_groups')
    op.drop_table('staff')
    op.drop_table('students')
    op.drop_table('education_groups')
    op.drop_table('rooms')
