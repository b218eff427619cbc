from datetime import datetime, timedelta
import string
import random

from hotseat import db

ROOM_STATUSES = ('waiting', 'in_progress', 'completed')
TURN_STATUSES = ('selecting_category', 'selecting_scenario', 'answering', 'voting', 'completed')


def generate_room_code(length=6):
    """Generate a unique, short join code."""
    while True:
        code = ''.join(random.choices(string.ascii_uppercase + string.digits, k=length))
        if not Room.query.filter_by(room_code=code).first():
            return code


class Room(db.Model):
    __tablename__ = 'room'
    id = db.Column(db.Integer, primary_key=True)
    room_code = db.Column(db.String(6), unique=True, index=True, nullable=False)
    status = db.Column(db.String(32), default='waiting', nullable=False)  # waiting, in_progress, completed
    total_rounds = db.Column(db.Integer, nullable=False)
    time_limit = db.Column(db.Integer, nullable=False)
    current_round = db.Column(db.Integer, nullable=True)
    current_turn = db.Column(db.Integer, nullable=True)
    round_voting_phase = db.Column(db.Boolean, default=False, nullable=False)
    host_id = db.Column(db.Integer, db.ForeignKey('player.id', name='fk_room_host_id', use_alter=True, ondelete='SET NULL'), nullable=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    expires_at = db.Column(db.DateTime, nullable=True)

    def __init__(self, **kwargs):
        ttl_hours = kwargs.pop('ttl_hours', None)
        super(Room, self).__init__(**kwargs)
        if not self.room_code:
            self.room_code = generate_room_code()
        if ttl_hours and not self.expires_at:
            self.expires_at = datetime.utcnow() + timedelta(hours=ttl_hours)

    def to_dict(self):
        return {
            'id': self.id,
            'room_code': self.room_code,
            'status': self.status,
            'total_rounds': self.total_rounds,
            'time_limit': self.time_limit,
            'current_round': self.current_round,
            'current_turn': self.current_turn,
            'round_voting_phase': self.round_voting_phase,
            'host_id': self.host_id,
            'expires_at': self.expires_at.isoformat() if self.expires_at else None,
        }


class Player(db.Model):
    __tablename__ = 'player'
    __table_args__ = (db.UniqueConstraint('room_id', 'nickname', name='uq_player_room_nickname'),)
    id = db.Column(db.Integer, primary_key=True)
    nickname = db.Column(db.String(64), nullable=False)
    room_id = db.Column(db.Integer, db.ForeignKey('room.id', ondelete='CASCADE'), nullable=False, index=True)
    is_host = db.Column(db.Boolean, default=False, nullable=False)
    total_points = db.Column(db.Integer, default=0, nullable=False)
    has_been_decider = db.Column(db.Boolean, default=False, nullable=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    def to_dict(self):
        return {
            'id': self.id,
            'nickname': self.nickname,
            'room_id': self.room_id,
            'is_host': self.is_host,
            'total_points': self.total_points,
            'has_been_decider': self.has_been_decider,
        }


class Round(db.Model):
    __tablename__ = 'round'
    __table_args__ = (db.UniqueConstraint('room_id', 'round_number', name='uq_round_room_number'),)
    id = db.Column(db.Integer, primary_key=True)
    room_id = db.Column(db.Integer, db.ForeignKey('room.id', ondelete='CASCADE'), nullable=False, index=True)
    round_number = db.Column(db.Integer, nullable=False)
    status = db.Column(db.String(32), default='selecting_category', nullable=False)
    is_complete = db.Column(db.Boolean, default=False, nullable=False)
    current_turn = db.Column(db.Integer, default=1, nullable=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    def to_dict(self):
        return {
            'id': self.id,
            'room_id': self.room_id,
            'round_number': self.round_number,
            'status': self.status,
            'is_complete': self.is_complete,
            'current_turn': self.current_turn,
        }


class Turn(db.Model):
    __tablename__ = 'turn'
    __table_args__ = (db.UniqueConstraint('round_id', 'turn_number', name='uq_turn_round_number'),)
    id = db.Column(db.Integer, primary_key=True)
    round_id = db.Column(db.Integer, db.ForeignKey('round.id', ondelete='CASCADE'), nullable=False, index=True)
    turn_number = db.Column(db.Integer, nullable=False)
    # Nulled when the decider leaves the room mid-turn
    decider_id = db.Column(db.Integer, db.ForeignKey('player.id', ondelete='SET NULL'), nullable=True)
    status = db.Column(db.String(32), default='selecting_category', nullable=False)
    category = db.Column(db.String(64), nullable=True)
    scenario_id = db.Column(db.Integer, db.ForeignKey('scenario.id', name='fk_turn_scenario_id', use_alter=True), nullable=True)
    context = db.Column(db.Text, nullable=True)

    def to_dict(self):
        return {
            'id': self.id,
            'round_id': self.round_id,
            'turn_number': self.turn_number,
            'decider_id': self.decider_id,
            'status': self.status,
            'category': self.category,
            'scenario_id': self.scenario_id,
            'context': self.context,
        }


class Scenario(db.Model):
    __tablename__ = 'scenario'
    id = db.Column(db.Integer, primary_key=True)
    turn_id = db.Column(db.Integer, db.ForeignKey('turn.id', ondelete='CASCADE'), nullable=False, index=True)
    scenario_text = db.Column(db.Text, nullable=False)
    is_custom = db.Column(db.Boolean, default=False, nullable=False)

    def to_dict(self):
        return {
            'id': self.id,
            'turn_id': self.turn_id,
            'scenario_text': self.scenario_text,
            'is_custom': self.is_custom,
        }


class DeciderHistory(db.Model):
    __tablename__ = 'decider_history'
    __table_args__ = (db.UniqueConstraint('round_id', 'player_id', name='uq_decider_history_round_player'),)
    id = db.Column(db.Integer, primary_key=True)
    round_id = db.Column(db.Integer, db.ForeignKey('round.id', ondelete='CASCADE'), nullable=False, index=True)
    player_id = db.Column(db.Integer, db.ForeignKey('player.id', ondelete='CASCADE'), nullable=False)
    turn_number = db.Column(db.Integer, nullable=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    def to_dict(self):
        return {
            'id': self.id,
            'round_id': self.round_id,
            'player_id': self.player_id,
            'turn_number': self.turn_number,
        }


class Answer(db.Model):
    __tablename__ = 'answer'
    __table_args__ = (db.UniqueConstraint('turn_id', 'player_id', name='uq_answer_turn_player'),)
    id = db.Column(db.Integer, primary_key=True)
    turn_id = db.Column(db.Integer, db.ForeignKey('turn.id', ondelete='CASCADE'), nullable=False, index=True)
    player_id = db.Column(db.Integer, db.ForeignKey('player.id', ondelete='CASCADE'), nullable=False)
    answer_text = db.Column(db.Text, nullable=False)
    ai_score = db.Column(db.Integer, nullable=True)
    ai_feedback = db.Column(db.Text, nullable=True)
    vote_points = db.Column(db.Integer, default=0, nullable=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    def to_dict(self):
        return {
            'id': self.id,
            'turn_id': self.turn_id,
            'player_id': self.player_id,
            'answer_text': self.answer_text,
            'ai_score': self.ai_score,
            'ai_feedback': self.ai_feedback,
            'vote_points': self.vote_points,
        }


class Vote(db.Model):
    __tablename__ = 'vote'
    # No uniqueness on (answer_id, voter_id): repeated upvotes are allowed
    id = db.Column(db.Integer, primary_key=True)
    answer_id = db.Column(db.Integer, db.ForeignKey('answer.id', ondelete='CASCADE'), nullable=False, index=True)
    voter_id = db.Column(db.Integer, db.ForeignKey('player.id', ondelete='CASCADE'), nullable=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    def to_dict(self):
        return {
            'id': self.id,
            'answer_id': self.answer_id,
            'voter_id': self.voter_id,
        }


class GameStatistics(db.Model):
    __tablename__ = 'game_statistics'
    # Single row of lifetime counters
    id = db.Column(db.Integer, primary_key=True)
    rooms_created = db.Column(db.Integer, default=0, nullable=False)
    players_participated = db.Column(db.Integer, default=0, nullable=False)
    last_updated = db.Column(db.DateTime, nullable=True)

    def to_dict(self):
        return {
            'rooms_created': self.rooms_created,
            'players_participated': self.players_participated,
            'last_updated': self.last_updated.isoformat() if self.last_updated else None,
        }


# Table name -> model, used when applying state-machine mutations
MODELS = {
    'room': Room,
    'player': Player,
    'round': Round,
    'turn': Turn,
    'scenario': Scenario,
    'decider_history': DeciderHistory,
    'answer': Answer,
    'vote': Vote,
}
