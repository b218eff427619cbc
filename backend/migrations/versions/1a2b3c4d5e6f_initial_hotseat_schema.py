"""initial hotseat schema: rooms, players, rounds, turns, scenarios, answers, votes

Revision ID: 1a2b3c4d5e6f
Revises:
Create Date: 2026-10-17 12:00:00.000000

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '1a2b3c4d5e6f'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        'room',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('room_code', sa.String(length=6), nullable=False),
        sa.Column('status', sa.String(length=32), nullable=False),
        sa.Column('total_rounds', sa.Integer(), nullable=False),
        sa.Column('time_limit', sa.Integer(), nullable=False),
        sa.Column('current_round', sa.Integer(), nullable=True),
        sa.Column('current_turn', sa.Integer(), nullable=True),
        sa.Column('round_voting_phase', sa.Boolean(), nullable=False),
        sa.Column('host_id', sa.Integer(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.Column('expires_at', sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_room_room_code', 'room', ['room_code'], unique=True)

    op.create_table(
        'player',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('nickname', sa.String(length=64), nullable=False),
        sa.Column('room_id', sa.Integer(), nullable=False),
        sa.Column('is_host', sa.Boolean(), nullable=False),
        sa.Column('total_points', sa.Integer(), nullable=False),
        sa.Column('has_been_decider', sa.Boolean(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(['room_id'], ['room.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('room_id', 'nickname', name='uq_player_room_nickname'),
    )
    op.create_index('ix_player_room_id', 'player', ['room_id'])
    op.create_foreign_key('fk_room_host_id', 'room', 'player', ['host_id'], ['id'], ondelete='SET NULL')

    op.create_table(
        'round',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('room_id', sa.Integer(), nullable=False),
        sa.Column('round_number', sa.Integer(), nullable=False),
        sa.Column('status', sa.String(length=32), nullable=False),
        sa.Column('is_complete', sa.Boolean(), nullable=False),
        sa.Column('current_turn', sa.Integer(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(['room_id'], ['room.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('room_id', 'round_number', name='uq_round_room_number'),
    )
    op.create_index('ix_round_room_id', 'round', ['room_id'])

    op.create_table(
        'turn',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('round_id', sa.Integer(), nullable=False),
        sa.Column('turn_number', sa.Integer(), nullable=False),
        sa.Column('decider_id', sa.Integer(), nullable=True),
        sa.Column('status', sa.String(length=32), nullable=False),
        sa.Column('category', sa.String(length=64), nullable=True),
        sa.Column('scenario_id', sa.Integer(), nullable=True),
        sa.Column('context', sa.Text(), nullable=True),
        sa.ForeignKeyConstraint(['round_id'], ['round.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['decider_id'], ['player.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('round_id', 'turn_number', name='uq_turn_round_number'),
    )
    op.create_index('ix_turn_round_id', 'turn', ['round_id'])

    op.create_table(
        'scenario',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('turn_id', sa.Integer(), nullable=False),
        sa.Column('scenario_text', sa.Text(), nullable=False),
        sa.Column('is_custom', sa.Boolean(), nullable=False),
        sa.ForeignKeyConstraint(['turn_id'], ['turn.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_scenario_turn_id', 'scenario', ['turn_id'])
    op.create_foreign_key('fk_turn_scenario_id', 'turn', 'scenario', ['scenario_id'], ['id'])

    op.create_table(
        'decider_history',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('round_id', sa.Integer(), nullable=False),
        sa.Column('player_id', sa.Integer(), nullable=False),
        sa.Column('turn_number', sa.Integer(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(['round_id'], ['round.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['player_id'], ['player.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('round_id', 'player_id', name='uq_decider_history_round_player'),
    )
    op.create_index('ix_decider_history_round_id', 'decider_history', ['round_id'])

    op.create_table(
        'answer',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('turn_id', sa.Integer(), nullable=False),
        sa.Column('player_id', sa.Integer(), nullable=False),
        sa.Column('answer_text', sa.Text(), nullable=False),
        sa.Column('ai_score', sa.Integer(), nullable=True),
        sa.Column('ai_feedback', sa.Text(), nullable=True),
        sa.Column('vote_points', sa.Integer(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(['turn_id'], ['turn.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['player_id'], ['player.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('turn_id', 'player_id', name='uq_answer_turn_player'),
    )
    op.create_index('ix_answer_turn_id', 'answer', ['turn_id'])

    op.create_table(
        'vote',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('answer_id', sa.Integer(), nullable=False),
        sa.Column('voter_id', sa.Integer(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(['answer_id'], ['answer.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['voter_id'], ['player.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_vote_answer_id', 'vote', ['answer_id'])


def downgrade():
    op.drop_index('ix_vote_answer_id', table_name='vote')
    op.drop_table('vote')
    op.drop_index('ix_answer_turn_id', table_name='answer')
    op.drop_table('answer')
    op.drop_index('ix_decider_history_round_id', table_name='decider_history')
    op.drop_table('decider_history')
    op.drop_constraint('fk_turn_scenario_id', 'turn', type_='foreignkey')
    op.drop_index('ix_scenario_turn_id', table_name='scenario')
    op.drop_table('scenario')
    op.drop_index('ix_turn_round_id', table_name='turn')
    op.drop_table('turn')
    op.drop_index('ix_round_room_id', table_name='round')
    op.drop_table('round')
    op.drop_constraint('fk_room_host_id', 'room', type_='foreignkey')
    op.drop_index('ix_player_room_id', table_name='player')
    op.drop_table('player')
    op.drop_index('ix_room_room_code', table_name='room')
    op.drop_table('room')
