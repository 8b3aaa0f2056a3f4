"""
Tests for the headless simulation runner.

Run with: pytest test_simulate.py -v
"""

from constants import WINNER_DRAW
from game import GamePhase
from simulate import SimulationStats, run_detailed_game, run_game, run_simulation


class TestSimulation:

    def test_run_game_records_outcome(self):
        stats = SimulationStats()
        game = run_game(stats, seed=5)

        assert game.phase == GamePhase.ENDED
        assert stats.games_played == 1
        assert stats.total_turns > 0
        if game.winner_id == WINNER_DRAW:
            assert stats.draws == 1
        else:
            assert sum(stats.player_wins.values()) == 1

    def test_seeded_simulation_is_reproducible(self, capsys):
        first = run_simulation(5, seed=100)
        second = run_simulation(5, seed=100)
        capsys.readouterr()

        assert first.player_wins == second.player_wins
        assert first.draws == second.draws
        assert first.total_turns == second.total_turns

    def test_report_lists_outcomes(self):
        stats = SimulationStats()
        for seed in range(3):
            run_game(stats, seed=seed)
        report = stats.report()
        assert "Games played: 3" in report
        assert "Draws:" in report

    def test_detailed_game_prints_events(self, capsys):
        run_detailed_game(seed=2)
        out = capsys.readouterr().out
        assert "game_started" in out
        assert "game_ended" in out
