"""
Tests for saving and restoring a game mid-play.

A restored game must play out exactly as the saved one would have.
"""

import json

import pytest

from ai import CPUStrategy
from game import CardConservationError, Game, GameOptions, GamePhase, Player
from models.events import EventType
from scheduler import ManualScheduler


def create_cpu_game(seed: int) -> tuple[Game, ManualScheduler]:
    scheduler = ManualScheduler()
    players = [Player(id=0, name="A", is_cpu=True), Player(id=1, name="B", is_cpu=True)]
    game = Game(players, scheduler, options=GameOptions(deck_seed=seed))
    for player in players:
        CPUStrategy(player.id).attach(game)
    return game, scheduler


def restore(snapshot: dict) -> tuple[Game, ManualScheduler]:
    scheduler = ManualScheduler()
    game = Game.from_snapshot(json.loads(json.dumps(snapshot)), scheduler)
    for player in game.players:
        CPUStrategy(player.id).attach(game)
    return game, scheduler


def run_until_turns(game: Game, scheduler: ManualScheduler, turns: int) -> None:
    seen = []
    game.subscribe(lambda e: seen.append(e) if e.event_type == EventType.TURN_CHANGED else None)
    while len(seen) < turns and scheduler.run_next():
        pass


def outcome(game: Game) -> tuple:
    return (
        game.winner_id,
        [[c.identity for c in p.hand] for p in game.players],
        game.deck.order,
        [c.identity for c in game.discard_pile],
    )


class TestSnapshot:

    @pytest.mark.parametrize("seed", [2, 12, 40])
    def test_mid_game_restore_finishes_identically(self, seed):
        game, scheduler = create_cpu_game(seed)
        game.start_game()
        run_until_turns(game, scheduler, 6)

        snapshot = game.to_snapshot()
        restored, restored_scheduler = restore(snapshot)
        assert restored.get_state(None) == game.get_state(None)

        # The original keeps its pending timers; the copy re-arms its own
        scheduler.run_until_idle()
        restored.resume()
        restored_scheduler.run_until_idle()

        assert game.phase == GamePhase.ENDED
        assert restored.phase == GamePhase.ENDED
        assert outcome(restored) == outcome(game)

    def test_restore_during_deal(self):
        game, scheduler = create_cpu_game(seed=31)
        game.start_game()
        snapshot = game.to_snapshot()
        assert snapshot["phase"] == "dealing"

        restored, restored_scheduler = restore(snapshot)
        scheduler.run_next()
        restored.resume()
        restored_scheduler.run_next()

        assert restored.phase == GamePhase.AWAITING_MOVE
        assert restored.top_card == game.top_card
        assert restored.current_player_index == game.current_player_index

    def test_restore_waits_out_the_deal(self):
        game, scheduler = create_cpu_game(seed=31)
        game.start_game()

        restored, restored_scheduler = restore(game.to_snapshot())
        restored.resume()

        restored_scheduler.advance(restored.options.end_turn_delay)
        assert restored.phase == GamePhase.DEALING
        restored_scheduler.advance(restored.deal_duration)
        assert restored.phase == GamePhase.AWAITING_MOVE

    def test_restore_during_pending_cpu_draw(self):
        for seed in range(50):
            game, scheduler = create_cpu_game(seed)
            game.start_game()
            while not game.must_draw and scheduler.run_next():
                pass
            if game.must_draw:
                break
        assert game.must_draw

        restored, restored_scheduler = restore(game.to_snapshot())
        restored.resume()
        restored_scheduler.run_until_idle()
        scheduler.run_until_idle()

        assert restored.phase == GamePhase.ENDED
        assert outcome(restored) == outcome(game)

    def test_next_game_seed_survives_restore(self):
        game, scheduler = create_cpu_game(seed=7)
        game.start_game()
        scheduler.run_until_idle()

        restored, _ = restore(game.to_snapshot())
        assert restored.games_started == 1

        game.start_game()
        restored.start_game()
        assert restored.deck.seed == game.deck.seed
        assert restored.deck.order == game.deck.order

    def test_sequence_numbers_continue(self):
        game, scheduler = create_cpu_game(seed=4)
        game.start_game()
        scheduler.run_next()
        last = game.to_snapshot()["sequence_num"]

        restored, restored_scheduler = restore(game.to_snapshot())
        events = []
        restored.subscribe(events.append)
        restored.resume()

        assert events[0].sequence_num == last + 1

    def test_snapshot_is_json_compatible(self):
        game, scheduler = create_cpu_game(seed=9)
        game.start_game()
        scheduler.run_next()
        snapshot = game.to_snapshot()

        restored = Game.from_snapshot(json.loads(json.dumps(snapshot)), ManualScheduler())
        assert restored.to_snapshot() == json.loads(json.dumps(snapshot))

    def test_corrupt_snapshot_rejected(self):
        game, scheduler = create_cpu_game(seed=9)
        game.start_game()
        scheduler.run_next()
        snapshot = json.loads(json.dumps(game.to_snapshot()))

        # Duplicate the top card into a hand
        snapshot["players"][0]["hand"].append(snapshot["top_card"])
        with pytest.raises(CardConservationError):
            Game.from_snapshot(snapshot, ManualScheduler())
