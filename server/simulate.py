"""
Crazy Eights Simulation Runner

Runs CPU-vs-CPU games headlessly on a virtual clock.
No server/websocket needed - runs games directly.

Usage:
    python simulate.py [num_games] [seed]
    python simulate.py detail [seed]

Examples:
    python simulate.py 100       # Run 100 games with random shuffles
    python simulate.py 50 7      # Run 50 games, seeds 7..56 (reproducible)
    python simulate.py detail 3  # Print every event of one game
"""

import sys
from typing import Optional

from ai import CPUStrategy
from constants import WINNER_DRAW
from game import Game, GameOptions, Player
from models.events import EventType, GameEvent
from scheduler import ManualScheduler


class SimulationStats:
    """Track simulation statistics."""

    def __init__(self):
        self.games_played = 0
        self.draws = 0
        self.total_turns = 0
        self.total_cards_drawn = 0
        self.total_passes = 0
        self.deck_exhaustions = 0
        self.player_wins: dict[str, int] = {}
        self.starts_won = 0

    def record_game(self, game: Game, turns: int, cards_drawn: int, passes: int,
                    first_player_id: Optional[int]):
        self.games_played += 1
        self.total_turns += turns
        self.total_cards_drawn += cards_drawn
        self.total_passes += passes
        if game.deck_exhausted:
            self.deck_exhaustions += 1

        if game.winner_id == WINNER_DRAW:
            self.draws += 1
            return

        winner = game.get_player(game.winner_id)
        self.player_wins[winner.name] = self.player_wins.get(winner.name, 0) + 1
        if winner.id == first_player_id:
            self.starts_won += 1

    def report(self) -> str:
        games = max(1, self.games_played)
        decided = max(1, self.games_played - self.draws)
        lines = [
            "=" * 50,
            "SIMULATION RESULTS",
            "=" * 50,
            f"Games played: {self.games_played}",
            f"Total turns: {self.total_turns}",
            f"Avg turns/game: {self.total_turns / games:.1f}",
            f"Avg cards drawn/game: {self.total_cards_drawn / games:.1f}",
            f"Avg passes/game: {self.total_passes / games:.2f}",
            f"Games that emptied the deck: {self.deck_exhaustions}",
            "",
            "OUTCOMES:",
        ]

        for name, wins in sorted(self.player_wins.items(), key=lambda x: -x[1]):
            pct = wins / games * 100
            lines.append(f"  {name}: {wins} wins ({pct:.1f}%)")
        lines.append(f"  Draws: {self.draws} ({self.draws / games * 100:.1f}%)")
        lines.append("")
        lines.append(f"Starting player won: {self.starts_won / decided * 100:.1f}% of decided games")

        return "\n".join(lines)


def create_cpu_players() -> list[Player]:
    return [
        Player(id=0, name="CPU A", is_cpu=True),
        Player(id=1, name="CPU B", is_cpu=True),
    ]


def run_game(
    stats: SimulationStats,
    seed: Optional[int] = None,
    on_event=None,
) -> Game:
    """
    Play one game to completion and record it.

    Args:
        stats: Statistics accumulator.
        seed: Deck seed, or None for a random shuffle.
        on_event: Optional extra listener (used by detail mode).

    Returns:
        The finished game.
    """
    scheduler = ManualScheduler()
    players = create_cpu_players()
    game = Game(players, scheduler, options=GameOptions(deck_seed=seed))

    for player in players:
        CPUStrategy(player.id).attach(game)

    counts = {"turns": 0, "drawn": 0, "passes": 0}
    first_player: list[int] = []

    def count(event: GameEvent) -> None:
        if event.event_type == EventType.TURN_CHANGED:
            counts["turns"] += 1
            if not first_player:
                first_player.append(event.player_id)
        elif event.event_type == EventType.CARD_DRAWN:
            counts["drawn"] += 1
        elif event.event_type == EventType.TURN_PASSED:
            counts["passes"] += 1

    game.subscribe(count)
    if on_event is not None:
        game.subscribe(on_event)

    game.start_game()
    scheduler.run_until_idle()
    game.check_card_conservation()

    stats.record_game(
        game,
        turns=counts["turns"],
        cards_drawn=counts["drawn"],
        passes=counts["passes"],
        first_player_id=first_player[0] if first_player else None,
    )
    return game


def run_simulation(num_games: int = 10, seed: Optional[int] = None, verbose: bool = True):
    """Run multiple games and report statistics."""

    print(f"\nRunning {num_games} games...")
    print("=" * 50)

    stats = SimulationStats()

    for i in range(num_games):
        game_seed = seed + i if seed is not None else None
        game = run_game(stats, seed=game_seed)

        if verbose and num_games <= 20:
            outcome = "draw" if game.winner_id == WINNER_DRAW else game.get_player(game.winner_id).name
            print(f"Game {i + 1}/{num_games} (seed {game.deck.seed}): {outcome}")

    print("\n")
    print(stats.report())
    return stats


def run_detailed_game(seed: Optional[int] = None):
    """Run a single game printing every event."""

    print("\nRunning detailed game...")
    print("=" * 50)

    def show(event: GameEvent) -> None:
        who = f" player={event.player_id}" if event.player_id is not None else ""
        print(f"  #{event.sequence_num:<4} {event.event_type.value:<18}{who} {event.data}")

    stats = SimulationStats()
    game = run_game(stats, seed=seed, on_event=show)

    print("\n" + "=" * 50)
    print(f"Seed: {game.deck.seed}")
    for player in game.players:
        print(f"  {player.name}: {[c.label for c in player.hand]}")
    if game.winner_id == WINNER_DRAW:
        print("\nResult: draw")
    else:
        print(f"\nWinner: {game.get_player(game.winner_id).name}!")


if __name__ == "__main__":
    if len(sys.argv) > 1 and sys.argv[1] == "detail":
        seed = int(sys.argv[2]) if len(sys.argv) > 2 else None
        run_detailed_game(seed)
    else:
        num_games = int(sys.argv[1]) if len(sys.argv) > 1 else 10
        seed = int(sys.argv[2]) if len(sys.argv) > 2 else None
        run_simulation(num_games, seed)
