"""
Tests for the event stream and state replay.

These tests verify that:
1. Events are emitted correctly from game actions
2. Events survive JSON serialization
3. State can be rebuilt from events
4. Rebuilt state matches original game state
5. Events are applied in correct sequence order
"""

import pytest

from ai import CPUStrategy
from game import Game, GameOptions, Player
from models.events import GameEvent, EventType
from models.game_state import GamePhase, RebuiltGameState, rebuild_state
from scheduler import ManualScheduler


class EventCollector:
    """Helper class to collect events from a game."""

    def __init__(self):
        self.events: list[GameEvent] = []

    def collect(self, event: GameEvent) -> None:
        """Callback to collect an event."""
        self.events.append(event)

    def clear(self) -> None:
        """Clear collected events."""
        self.events = []


def create_test_game(seed: int = 17) -> tuple[Game, ManualScheduler, EventCollector]:
    """
    Create a CPU-vs-CPU game with event collection enabled.

    Returns:
        Tuple of (Game, ManualScheduler, EventCollector).
    """
    scheduler = ManualScheduler()
    players = [Player(id=0, name="A", is_cpu=True), Player(id=1, name="B", is_cpu=True)]
    game = Game(players, scheduler, options=GameOptions(deck_seed=seed))
    collector = EventCollector()
    game.subscribe(collector.collect)
    for player in players:
        CPUStrategy(player.id).attach(game)
    return game, scheduler, collector


def assert_matches(state: RebuiltGameState, game: Game) -> None:
    """Compare a rebuilt state against the live game."""
    assert state.phase.value == game.phase.value
    assert state.winner_id == game.winner_id
    assert state.deck_remaining == game.deck.cards_remaining()
    assert state.deck_exhausted == game.deck_exhausted
    assert state.discard_count == len(game.discard_pile)
    if game.top_card is None:
        assert state.top_card is None
    else:
        assert state.top_card.to_dict() == game.top_card.to_dict()
    for player in game.players:
        rebuilt = state.get_player(player.id)
        assert [c.to_dict() for c in rebuilt.hand] == [c.to_dict() for c in player.hand]


class TestEventEmission:
    """Test that events are emitted correctly."""

    def test_game_started_first(self):
        game, scheduler, collector = create_test_game()
        game.start_game()

        event = collector.events[0]
        assert event.event_type == EventType.GAME_STARTED
        assert event.sequence_num == 1
        assert event.data["player_order"] == [0, 1]
        assert event.data["deck_seed"] == 17

    def test_every_event_carries_game_id(self):
        game, scheduler, collector = create_test_game()
        game.start_game()
        scheduler.run_until_idle()
        assert {e.game_id for e in collector.events} == {game.game_id}

    def test_game_ends_with_game_ended(self):
        game, scheduler, collector = create_test_game()
        game.start_game()
        scheduler.run_until_idle()
        assert collector.events[-1].event_type == EventType.GAME_ENDED


class TestSerialization:

    def test_json_round_trip(self):
        game, scheduler, collector = create_test_game()
        game.start_game()
        scheduler.run_until_idle()

        for event in collector.events:
            restored = GameEvent.from_json(event.to_json())
            assert restored.to_dict() == event.to_dict()

    def test_client_dict_hides_other_players_cards(self):
        game, scheduler, collector = create_test_game()
        game.start_game()

        dealt_to_b = next(
            e for e in collector.events
            if e.event_type == EventType.CARD_DEALT and e.player_id == 1
        )
        assert "card" in dealt_to_b.to_client_dict(1)["data"]
        assert "card" not in dealt_to_b.to_client_dict(0)["data"]
        assert "card" not in dealt_to_b.to_client_dict(None)["data"]
        # The original event is untouched
        assert "card" in dealt_to_b.data

    def test_public_events_unfiltered(self):
        game, scheduler, collector = create_test_game()
        game.start_game()
        scheduler.run_next()

        revealed = next(e for e in collector.events if e.event_type == EventType.TOP_CARD_REVEALED)
        assert revealed.to_client_dict(0)["data"]["card"] == game.top_card.to_dict()


class TestReplay:

    def test_rebuild_after_deal(self):
        game, scheduler, collector = create_test_game()
        game.start_game()
        scheduler.run_next()

        state = rebuild_state(collector.events)
        assert state.phase == GamePhase.AWAITING_MOVE
        assert state.current_player_id == game.current_player().id
        assert_matches(state, game)

    @pytest.mark.parametrize("seed", [1, 2, 3, 4, 5])
    def test_rebuild_finished_game(self, seed):
        game, scheduler, collector = create_test_game(seed=seed)
        game.start_game()
        scheduler.run_until_idle()

        state = rebuild_state(collector.events)
        assert state.phase == GamePhase.ENDED
        assert_matches(state, game)

    def test_rebuild_mid_game_after_every_event(self):
        game, scheduler, collector = create_test_game(seed=6)
        game.start_game()
        state = rebuild_state(collector.events)

        applied = len(collector.events)
        while scheduler.run_next():
            for event in collector.events[applied:]:
                state.apply(event)
            applied = len(collector.events)
            assert_matches(state, game)

    def test_rebuild_from_second_game(self):
        game, scheduler, collector = create_test_game()
        game.start_game()
        scheduler.run_until_idle()

        collector.clear()
        game.start_game()
        scheduler.run_until_idle()

        started = next(
            i for i, e in enumerate(collector.events) if e.event_type == EventType.GAME_STARTED
        )
        state = rebuild_state(collector.events[started:])
        assert_matches(state, game)

    def test_reset_clears_hands(self):
        game, scheduler, collector = create_test_game()
        game.start_game()
        scheduler.run_next()
        game.reset_game()

        state = rebuild_state(collector.events)
        assert state.phase == GamePhase.NOT_STARTED
        assert state.hand_sizes() == {0: 0, 1: 0}
        assert state.top_card is None

    def test_out_of_sequence_rejected(self):
        game, scheduler, collector = create_test_game()
        game.start_game()

        state = RebuiltGameState(game_id=game.game_id)
        state.apply(collector.events[0])
        with pytest.raises(ValueError):
            state.apply(collector.events[2])

    def test_empty_event_list_rejected(self):
        with pytest.raises(ValueError):
            rebuild_state([])

    def test_filtered_events_cannot_rebuild_hands(self):
        game, scheduler, collector = create_test_game()
        game.start_game()

        filtered = [GameEvent.from_dict(e.to_client_dict(0)) for e in collector.events]
        with pytest.raises(ValueError):
            rebuild_state(filtered)
