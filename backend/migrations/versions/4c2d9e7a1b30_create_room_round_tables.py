"""create room, player, catalog, hand, submission and vote tables

Revision ID: 4c2d9e7a1b30
Revises:
Create Date: 2026-10-12 10:00:00.000000

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '4c2d9e7a1b30'
down_revision = None
branch_labels = None
depends_on = None

ROOM_STATUSES = ('waiting', 'theme_selection', 'countdown', 'playing', 'voting', 'results', 'finished')


def upgrade():
    op.create_table(
        'word_card',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('word', sa.String(length=32), nullable=False, unique=True),
    )
    op.create_table(
        'theme',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('name', sa.String(length=64), nullable=False, unique=True),
        sa.Column('description', sa.String(length=256), nullable=True),
    )
    op.create_table(
        'room',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('room_code', sa.String(length=6), nullable=False),
        sa.Column('host_id', sa.Integer(), nullable=True),
        sa.Column('status', sa.Enum(*ROOM_STATUSES, name='roomstatus', native_enum=False, length=32), nullable=False),
        sa.Column('max_players', sa.Integer(), nullable=False),
        sa.Column('total_rounds', sa.Integer(), nullable=False),
        sa.Column('current_round', sa.Integer(), nullable=False),
        sa.Column('current_theme_id', sa.Integer(), sa.ForeignKey('theme.id'), nullable=True),
        sa.Column('round_end_time', sa.Float(), nullable=True),
        sa.Column('current_viewing_index', sa.Integer(), nullable=False),
        sa.Column('show_all_submissions', sa.Boolean(), nullable=False),
        sa.Column('created_at', sa.Float(), nullable=False),
    )
    op.create_index('ix_room_room_code', 'room', ['room_code'], unique=True)

    op.create_table(
        'player',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('room_id', sa.Integer(), sa.ForeignKey('room.id'), nullable=False),
        sa.Column('nickname', sa.String(length=32), nullable=False),
        sa.Column('avatar', sa.String(length=8), nullable=False),
        sa.Column('total_votes', sa.Integer(), nullable=False),
        sa.Column('hand_reloaded_round', sa.Integer(), nullable=True),
        sa.Column('joined_at', sa.Float(), nullable=False),
    )
    op.create_index('ix_player_room_id', 'player', ['room_id'])

    # room.host_id <-> player.room_id is a cycle; add the host FK once both exist
    with op.batch_alter_table('room') as batch_op:
        batch_op.create_foreign_key('fk_room_host_id', 'player', ['host_id'], ['id'])

    op.create_table(
        'player_hand',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('player_id', sa.Integer(), sa.ForeignKey('player.id'), nullable=False),
        sa.Column('word_card_id', sa.Integer(), sa.ForeignKey('word_card.id'), nullable=False),
        sa.UniqueConstraint('player_id', 'word_card_id', name='uq_player_hand_card'),
    )
    op.create_index('ix_player_hand_player_id', 'player_hand', ['player_id'])

    op.create_table(
        'submission',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('room_id', sa.Integer(), sa.ForeignKey('room.id'), nullable=False),
        sa.Column('player_id', sa.Integer(), sa.ForeignKey('player.id'), nullable=False),
        sa.Column('round_number', sa.Integer(), nullable=False),
        sa.Column('card1_id', sa.Integer(), sa.ForeignKey('word_card.id'), nullable=False),
        sa.Column('card2_id', sa.Integer(), sa.ForeignKey('word_card.id'), nullable=False),
        sa.Column('free_word', sa.String(length=16), nullable=False),
        sa.Column('word_order', sa.Text(), nullable=False),
        sa.Column('votes_received', sa.Integer(), nullable=False),
        sa.Column('created_at', sa.Float(), nullable=False),
        sa.UniqueConstraint('room_id', 'player_id', 'round_number', name='uq_submission_room_player_round'),
        sa.CheckConstraint('card1_id <> card2_id', name='ck_submission_distinct_cards'),
    )
    op.create_index('ix_submission_room_id', 'submission', ['room_id'])

    op.create_table(
        'vote',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('room_id', sa.Integer(), sa.ForeignKey('room.id'), nullable=False),
        sa.Column('round_number', sa.Integer(), nullable=False),
        sa.Column('voter_id', sa.Integer(), sa.ForeignKey('player.id'), nullable=False),
        sa.Column('submission_id', sa.Integer(), sa.ForeignKey('submission.id'), nullable=False),
        sa.Column('created_at', sa.Float(), nullable=False),
        sa.UniqueConstraint('room_id', 'round_number', 'voter_id', name='uq_vote_room_round_voter'),
    )
    op.create_index('ix_vote_room_id', 'vote', ['room_id'])


def downgrade():
    op.drop_index('ix_vote_room_id', table_name='vote')
    op.drop_table('vote')
    op.drop_index('ix_submission_room_id', table_name='submission')
    op.drop_table('submission')
    op.drop_index('ix_player_hand_player_id', table_name='player_hand')
    op.drop_table('player_hand')
    with op.batch_alter_table('room') as batch_op:
        batch_op.drop_constraint('fk_room_host_id', type_='foreignkey')
    op.drop_index('ix_player_room_id', table_name='player')
    op.drop_table('player')
    op.drop_index('ix_room_room_code', table_name='room')
    op.drop_table('room')
    op.drop_table('theme')
    op.drop_table('word_card')
