"""Initial schema: players, aliases, tournaments, matches, teams, standings

Revision ID: 3c9e1f4a7b20
Revises:
Create Date: 2026-10-01 12:00:00.000000+00:00

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


# Revision identifiers, used by Alembic
revision: str = '3c9e1f4a7b20'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

JsonType = sa.JSON().with_variant(postgresql.JSONB(), 'postgresql')


def upgrade() -> None:
    """Upgrade database schema."""
    op.create_table(
        'players',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('external_id', sa.String(length=64), nullable=True),
        sa.Column('first_name', sa.String(length=120), nullable=True),
        sa.Column('last_name', sa.String(length=120), nullable=True),
        sa.Column('national_id', sa.String(length=64), nullable=True),
        sa.Column('international_id', sa.String(length=64), nullable=True),
        sa.Column('club', sa.String(length=255), nullable=True),
        sa.Column('license', sa.String(length=64), nullable=True),
        sa.Column('country', sa.String(length=64), nullable=True),
        sa.Column('is_guest', sa.Boolean(), nullable=False),
        sa.Column('is_external', sa.Boolean(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
        sa.UniqueConstraint('name'),
    )

    op.create_table(
        'player_aliases',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('alias', sa.String(length=255), nullable=False),
        sa.Column('canonical_name', sa.String(length=255), nullable=False),
        sa.Column(
            'player_id', sa.Integer(),
            sa.ForeignKey('players.id', ondelete='SET NULL'), nullable=True,
        ),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.UniqueConstraint('alias'),
    )
    op.create_index('idx_player_aliases_canonical', 'player_aliases', ['canonical_name'])

    op.create_table(
        'tournaments',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('external_id', sa.String(length=64), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('mode', sa.String(length=50), nullable=True),
        sa.Column('sport', sa.String(length=50), nullable=True),
        sa.Column('tournament_type', sa.String(length=20), nullable=False),
        sa.Column('version', sa.Integer(), nullable=False),
        sa.Column('is_season_final', sa.Boolean(), nullable=False, server_default='false'),
        sa.Column('raw_data', JsonType, nullable=True),
        sa.Column('merged_external_ids', JsonType, nullable=True),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
        sa.UniqueConstraint('external_id'),
    )
    op.create_index(
        'idx_tournaments_season_final', 'tournaments', ['is_season_final', 'created_at']
    )

    op.create_table(
        'matches',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('external_id', sa.String(length=64), nullable=False),
        sa.Column(
            'tournament_id', sa.Integer(),
            sa.ForeignKey('tournaments.id', ondelete='CASCADE'), nullable=False,
        ),
        sa.Column('round_id', sa.String(length=64), nullable=True),
        sa.Column('round_name', sa.String(length=120), nullable=True),
        sa.Column('group_id', sa.String(length=64), nullable=True),
        sa.Column('is_elimination', sa.Boolean(), nullable=False),
        sa.Column('elimination_level', sa.String(length=120), nullable=True),
        sa.Column('team1_score', sa.Integer(), nullable=False),
        sa.Column('team2_score', sa.Integer(), nullable=False),
        sa.Column('time_start', sa.DateTime(), nullable=True),
        sa.Column('time_end', sa.DateTime(), nullable=True),
        sa.Column('valid', sa.Boolean(), nullable=False),
        sa.Column('skipped', sa.Boolean(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
        sa.UniqueConstraint('external_id'),
    )
    op.create_index('idx_matches_tournament', 'matches', ['tournament_id'])
    op.create_index('idx_matches_time_start', 'matches', ['time_start'])

    op.create_table(
        'teams',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column(
            'match_id', sa.Integer(),
            sa.ForeignKey('matches.id', ondelete='CASCADE'), nullable=False,
        ),
        sa.Column('team_number', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=True),
        sa.Column('score', sa.Integer(), nullable=False),
        sa.Column('won', sa.Boolean(), nullable=False),
        sa.UniqueConstraint('match_id', 'team_number', name='uq_team_match_number'),
        sa.CheckConstraint('team_number IN (1, 2)', name='ck_team_number'),
    )

    op.create_table(
        'team_players',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column(
            'team_id', sa.Integer(),
            sa.ForeignKey('teams.id', ondelete='CASCADE'), nullable=False,
        ),
        sa.Column('player_id', sa.Integer(), sa.ForeignKey('players.id'), nullable=False),
        sa.UniqueConstraint('team_id', 'player_id', name='uq_team_player'),
    )
    op.create_index('idx_team_players_player', 'team_players', ['player_id'])

    op.create_table(
        'standings',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column(
            'tournament_id', sa.Integer(),
            sa.ForeignKey('tournaments.id', ondelete='CASCADE'), nullable=False,
        ),
        sa.Column('player_id', sa.Integer(), sa.ForeignKey('players.id'), nullable=False),
        sa.Column('type', sa.String(length=20), nullable=False),
        sa.Column('place', sa.Integer(), nullable=False),
        sa.Column('points', sa.Float(), nullable=False),
        sa.Column('matches', sa.Integer(), nullable=False),
        sa.Column('matches_won', sa.Integer(), nullable=False),
        sa.Column('matches_lost', sa.Integer(), nullable=False),
        sa.Column('matches_drawn', sa.Integer(), nullable=False),
        sa.Column('sets_won', sa.Integer(), nullable=False),
        sa.Column('sets_lost', sa.Integer(), nullable=False),
        sa.Column('balls_won', sa.Integer(), nullable=False),
        sa.Column('balls_lost', sa.Integer(), nullable=False),
        sa.Column('bh1', sa.Float(), nullable=False),
        sa.Column('bh2', sa.Float(), nullable=False),
        sa.Column('deactivated', sa.Boolean(), nullable=False),
        sa.Column('removed', sa.Boolean(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
        sa.UniqueConstraint('tournament_id', 'player_id', 'type', name='uq_standing_key'),
        sa.CheckConstraint("type IN ('qualifying', 'elimination')", name='ck_standing_type'),
    )
    op.create_index('idx_standings_player', 'standings', ['player_id'])


def downgrade() -> None:
    """Downgrade database schema."""
    op.drop_index('idx_standings_player', table_name='standings')
    op.drop_table('standings')
    op.drop_index('idx_team_players_player', table_name='team_players')
    op.drop_table('team_players')
    op.drop_table('teams')
    op.drop_index('idx_matches_time_start', table_name='matches')
    op.drop_index('idx_matches_tournament', table_name='matches')
    op.drop_table('matches')
    op.drop_index('idx_tournaments_season_final', table_name='tournaments')
    op.drop_table('tournaments')
    op.drop_index('idx_player_aliases_canonical', table_name='player_aliases')
    op.drop_table('player_aliases')
    op.drop_table('players')
