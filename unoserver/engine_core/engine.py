"""
Match Engine - The authoritative state machine for one room.

LOBBY -> PLAYING -> GAME_OVER, never back.

All mutation goes through the public command methods (or apply()), which
are serialized by a re-entrant lock. Each accepted command ends with a
broadcast of a frozen snapshot; a rejected command changes nothing and
broadcasts nothing.

The engine also schedules its own callbacks:
- the bot move for a bot seat
- the UNO grace window after a player drops to one card
- the turn timeout
Each callback re-validates the state when it fires, because a human may
have acted in the meantime.
"""

from __future__ import annotations
from functools import wraps
from typing import Callable, TYPE_CHECKING
import logging
import random
import threading
import uuid

from .action import Command, CommandResult, CommandType, ErrorCode
from .cards import (
    Card,
    CardColor,
    CardValue,
    PLAYABLE_COLORS,
    answers_attack,
    is_exact_match,
    is_playable,
)
from .deck import Deck
from .scheduler import AsyncioScheduler, Scheduler, TimerHandle
from .settlement import UserStore, StatsUpdate, settle_match
from .state import (
    GameMode,
    GameRules,
    GameStatus,
    MatchSettings,
    MatchSnapshot,
    MatchState,
    Player,
)

if TYPE_CHECKING:
    from ..bots.policy import BotPolicy

logger = logging.getLogger(__name__)

Subscriber = Callable[[MatchSnapshot], None]


def serialized(method):
    """Run an engine method under the engine lock."""
    @wraps(method)
    def wrapper(self, *args, **kwargs):
        with self._lock:
            return method(self, *args, **kwargs)
    return wrapper


class MatchEngine:
    """
    One match, from lobby to settlement.

    Usage:
        engine = MatchEngine("4821", mode=GameMode.CHAOS)
        engine.subscribe(lambda snapshot: push_to_clients(snapshot))
        engine.add_player("alice", external_id="17")
        engine.add_player("Bot Alpha", is_bot=True)
        engine.start_game()
    """

    def __init__(
        self,
        room_id: str,
        mode: GameMode = GameMode.STANDARD,
        scheduler: Scheduler | None = None,
        user_store: UserStore | None = None,
        bot_policy: BotPolicy | None = None,
        settings: MatchSettings | None = None,
        rng: random.Random | None = None,
    ):
        self.room_id = room_id
        self.settings = settings or MatchSettings()
        self.scheduler = scheduler or AsyncioScheduler()
        self.user_store = user_store
        if bot_policy is None:
            from ..bots.uno_bot import HeuristicUnoBot
            bot_policy = HeuristicUnoBot()
        self.bot_policy = bot_policy
        self.rng = rng or random.Random()
        self.deck = Deck(rng=self.rng)

        self.state = MatchState(
            room_id=room_id,
            mode=mode,
            rules=GameRules.for_mode(mode),
            turn_start_time=self.scheduler.now(),
        )
        # Updates written at settlement, filled once the match is over
        self.settlement: dict[str, StatsUpdate] | None = None

        self._lock = threading.RLock()
        self._subscribers: list[Subscriber] = []
        self._bot_timer: TimerHandle | None = None
        self._turn_timer: TimerHandle | None = None
        self._uno_timers: dict[str, TimerHandle] = {}
        # Bumped every time a turn starts; timers compare against it
        self._turn_serial = 0

    # =========================================================================
    # Observers
    # =========================================================================

    @serialized
    def subscribe(self, callback: Subscriber) -> Callable[[], None]:
        """
        Register a state listener.

        The listener gets the current snapshot right away, then one per
        accepted command. Returns a function that unsubscribes.
        """
        self._subscribers.append(callback)
        callback(self.state.snapshot())

        def unsubscribe():
            with self._lock:
                if callback in self._subscribers:
                    self._subscribers.remove(callback)

        return unsubscribe

    @serialized
    def get_state(self) -> MatchSnapshot:
        return self.state.snapshot()

    @property
    def status(self) -> GameStatus:
        return self.state.status

    def _broadcast(self):
        snapshot = self.state.snapshot()
        for callback in list(self._subscribers):
            try:
                callback(snapshot)
            except Exception:
                logger.exception("[%s] Subscriber failed", self.room_id)

    # =========================================================================
    # Commands
    # =========================================================================

    def apply(self, command: Command) -> CommandResult:
        """Dispatch a transport command to its handler."""
        handler = self._get_handler(command.command_type)
        if handler is None:
            raise ValueError(f"No handler for command type: {command.command_type}")
        return handler(command)

    def _get_handler(self, command_type: CommandType):
        handlers = {
            CommandType.JOIN_ROOM: self._handle_join,
            CommandType.ADD_BOT: self._handle_add_bot,
            CommandType.START_GAME: lambda c: self.start_game(),
            CommandType.DRAW_CARD: lambda c: self.draw_card(c.payload.player_id),
            CommandType.PLAY_CARD: lambda c: self.play_card(
                c.payload.player_id,
                c.payload.card_id,
                c.payload.chosen_color,
                c.payload.target_player_id,
            ),
            CommandType.PASS_TURN: lambda c: self.pass_turn(c.payload.player_id),
            CommandType.DECLARE_UNO: lambda c: self.say_uno(c.payload.player_id),
        }
        return handlers.get(command_type)

    def _handle_join(self, command: Command) -> CommandResult:
        payload = command.payload
        if not payload.name:
            return CommandResult.failure("A player name is required", ErrorCode.NAME_REQUIRED)
        return self.add_player(payload.name, False, payload.player_id, payload.avatar_id)

    def _handle_add_bot(self, command: Command) -> CommandResult:
        payload = command.payload
        name = payload.name or f"Bot {self.rng.randrange(10000):04d}"
        avatar_id = payload.avatar_id or self.rng.randint(1, 12)
        return self.add_player(name, True, None, avatar_id)

    @serialized
    def add_player(
        self,
        name: str,
        is_bot: bool = False,
        external_id: str | int | None = None,
        avatar_id: int | None = None,
    ) -> CommandResult:
        """Seat a player. Only in the lobby, at most max_players, unique names."""
        s = self.state
        if s.status != GameStatus.LOBBY:
            return CommandResult.failure("Game already started", ErrorCode.GAME_ALREADY_STARTED)
        if s.num_players >= self.settings.max_players:
            return CommandResult.failure("Room is full", ErrorCode.ROOM_FULL)
        if any(p.name == name for p in s.players):
            return CommandResult.failure(f"Name {name} is taken", ErrorCode.NAME_TAKEN)

        if is_bot:
            player_id = f"bot_{uuid.uuid4().hex[:12]}"
        elif external_id is not None:
            player_id = str(external_id)
        else:
            player_id = f"player_{uuid.uuid4().hex[:12]}"

        if s.get_player(player_id):
            return CommandResult.failure(f"{player_id} is already seated", ErrorCode.ALREADY_SEATED)

        player = Player(
            id=player_id,
            name=name,
            is_bot=is_bot,
            avatar_id=avatar_id or 1,
        )
        s.players.append(player)
        s.message = f"{name} joined"
        logger.info("[%s] %s joined (%s)", self.room_id, name, "bot" if is_bot else player_id)

        self._broadcast()
        return CommandResult.ok(player)

    @serialized
    def start_game(self) -> CommandResult:
        """Deal, flip a non-wild starter, and hand the first turn to seat 0."""
        s = self.state
        if s.status != GameStatus.LOBBY:
            return CommandResult.failure("Game already started", ErrorCode.GAME_ALREADY_STARTED)
        if s.num_players < self.settings.min_players:
            return CommandResult.failure(
                f"Need at least {self.settings.min_players} players",
                ErrorCode.NOT_ENOUGH_PLAYERS,
            )

        self.deck.generate()
        for player in s.players:
            player.hand = self.deck.draw(self.settings.hand_size)
            player.has_said_uno = False

        starter = self.deck.flip_starter()
        s.discard_pile = [starter]
        s.active_color = starter.color
        s.deck_count = len(self.deck)
        s.turn_index = 0
        s.direction = 1
        s.pending_draw_value = 0
        s.status = GameStatus.PLAYING
        s.message = "Game Started!"
        logger.info("[%s] Game started with %d players, starter %s", self.room_id, s.num_players, starter)

        self._begin_turn()
        self._broadcast()
        self._schedule_bot_turn()
        return CommandResult.ok()

    @serialized
    def draw_card(self, player_id: str) -> CommandResult:
        """
        Draw for the current player, once per turn.

        Under a pending stack the draw takes the whole penalty and ends the
        turn. Otherwise one card: if it can be played the turn stays open.
        """
        s = self.state
        rejected = self._check_turn(player_id)
        if rejected:
            return rejected
        if s.has_drawn_this_turn:
            return CommandResult.failure("Already drew this turn", ErrorCode.ALREADY_DRAWN)

        player = s.current_player

        if s.pending_draw_value > 0:
            penalty = s.pending_draw_value
            s.message = f"{player.name} accepted the stack! (+{penalty})"
            self._deal(player, penalty)
            s.pending_draw_value = 0
            self._finish_turn()
            return CommandResult.ok()

        drawn = self._deal(player, 1)
        s.has_drawn_this_turn = True

        if drawn and is_playable(drawn[0], s.top_card, s.active_color):
            s.message = f"{player.name} drew a playable card!"
            self._start_turn_timer()
            self._broadcast()
            if player.is_bot:
                self._schedule_bot_turn(follow_up=True)
        else:
            s.message = f"{player.name} drew and passed."
            self._finish_turn()
        return CommandResult.ok()

    @serialized
    def play_card(
        self,
        player_id: str,
        card_id: str,
        chosen_color: CardColor | None = None,
        target_player_id: str | None = None,
    ) -> CommandResult:
        """Play a card from hand, out of turn only as an exact-match jump-in."""
        s = self.state
        if s.status != GameStatus.PLAYING:
            return CommandResult.failure("Game is not in progress", ErrorCode.GAME_NOT_PLAYING)

        index = s.index_of(player_id)
        if index == -1:
            return CommandResult.failure(f"Player {player_id} not found", ErrorCode.PLAYER_NOT_FOUND)
        player = s.players[index]

        card = player.find_card(card_id)
        if card is None:
            return CommandResult.failure(f"Card {card_id} not in hand", ErrorCode.CARD_NOT_FOUND)

        top = s.top_card
        jump_in = index != s.turn_index
        if jump_in and not (
            s.rules.jump_in
            and s.pending_draw_value == 0
            and is_exact_match(card, top)
        ):
            return CommandResult.failure(f"Not {player.name}'s turn", ErrorCode.NOT_YOUR_TURN)

        if s.pending_draw_value > 0:
            if not answers_attack(card, top):
                return CommandResult.failure(
                    f"Must answer the stack with {top.value.value}", ErrorCode.ILLEGAL_CARD,
                )
        elif not is_playable(card, top, s.active_color):
            return CommandResult.failure(f"{card} cannot be played on {top}", ErrorCode.ILLEGAL_CARD)

        prefix = ""
        if jump_in:
            logger.info("[%s] %s jumped in", self.room_id, player.name)
            s.turn_index = index
            self._cancel_bot_timer()
            self._begin_turn()
            prefix = f"{player.name} JUMPED IN! "

        player.remove_card(card.id)
        rotation = self.rng.randint(-15, 14)

        if card.is_wild:
            color = chosen_color if chosen_color in PLAYABLE_COLORS else CardColor.RED
            s.discard_pile.append(card.stamped(rotation, chosen_color=color))
            s.active_color = color
            message = f"{player.name} picked {color.value}"
        else:
            s.discard_pile.append(card.stamped(rotation))
            s.active_color = card.color
            message = f"{player.name} played {card}"

        if player.hand_size == 1 and not player.has_said_uno:
            self._arm_uno_check(player)

        skip_next = False
        if card.value == CardValue.REVERSE:
            s.direction *= -1
            message += " (Reverse)"
            if s.num_players == 2:
                skip_next = True
        elif card.value == CardValue.SKIP:
            skip_next = True
            message += " (Skip)"
        elif card.penalty:
            if s.rules.stacking:
                s.pending_draw_value += card.penalty
                message += f" (Stack: {s.pending_draw_value})"
            else:
                self._deal(s.players[s.next_index(1)], card.penalty)
                skip_next = True
                message += f" (+{card.penalty})"
        elif card.value == CardValue.ZERO and s.rules.seven_zero:
            self._rotate_hands()
            message += " (Hands Rotated!)"
        elif card.value == CardValue.SEVEN and s.rules.seven_zero:
            target = self._swap_target(index, target_player_id)
            player.hand, target.hand = target.hand, player.hand
            message += f" (Swapped with {target.name})"

        s.message = prefix + message

        # Any empty hand wins, swap and rotation recipients included
        winner = next((p for p in s.players if p.hand_size == 0), None)
        if winner is not None:
            self._end_game(winner)
            return CommandResult.ok()

        self._finish_turn(2 if skip_next else 1)
        return CommandResult.ok()

    @serialized
    def pass_turn(self, player_id: str) -> CommandResult:
        """End the turn; only allowed after drawing."""
        s = self.state
        rejected = self._check_turn(player_id)
        if rejected:
            return rejected
        if not s.has_drawn_this_turn:
            return CommandResult.failure("Draw before passing", ErrorCode.MUST_DRAW_FIRST)

        s.message = f"{s.current_player.name} passed."
        self._finish_turn()
        return CommandResult.ok()

    @serialized
    def say_uno(self, player_id: str) -> CommandResult:
        """Declare UNO. Cancels the pending UNO check, so a later turn reset cannot revive it."""
        s = self.state
        if s.status != GameStatus.PLAYING:
            return CommandResult.failure("Game is not in progress", ErrorCode.GAME_NOT_PLAYING)
        player = s.get_player(player_id)
        if player is None:
            return CommandResult.failure(f"Player {player_id} not found", ErrorCode.PLAYER_NOT_FOUND)

        player.has_said_uno = True
        pending = self._uno_timers.pop(player_id, None)
        if pending is not None:
            pending.cancel()
        s.message = f"{player.name} said UNO!"
        logger.info("[%s] %s declared UNO", self.room_id, player.name)
        self._broadcast()
        return CommandResult.ok()

    @serialized
    def close(self):
        """Cancel every timer and drop subscribers. The room is going away."""
        self._cancel_timers()
        self._subscribers.clear()

    # =========================================================================
    # Turn handling
    # =========================================================================

    def _check_turn(self, player_id: str) -> CommandResult | None:
        s = self.state
        if s.status != GameStatus.PLAYING:
            return CommandResult.failure("Game is not in progress", ErrorCode.GAME_NOT_PLAYING)
        index = s.index_of(player_id)
        if index == -1:
            return CommandResult.failure(f"Player {player_id} not found", ErrorCode.PLAYER_NOT_FOUND)
        if index != s.turn_index:
            return CommandResult.failure(f"Not {player_id}'s turn", ErrorCode.NOT_YOUR_TURN)
        return None

    def _finish_turn(self, step: int = 1):
        self._advance_turn(step)
        self._broadcast()
        self._schedule_bot_turn()

    def _begin_turn(self):
        s = self.state
        self._turn_serial += 1
        s.has_drawn_this_turn = False
        s.turn_start_time = self.scheduler.now()
        self._start_turn_timer()

    def _advance_turn(self, step: int = 1):
        """
        Move the turn on by step seats.

        If a stack is pending and the new holder cannot answer it, they
        take the penalty and the turn moves on again.
        """
        s = self.state
        s.turn_index = s.next_index(step)
        s.has_drawn_this_turn = False
        holder = s.current_player

        if s.rules.stacking and s.pending_draw_value > 0:
            if not any(answers_attack(c, s.top_card) for c in holder.hand):
                penalty = s.pending_draw_value
                logger.info("[%s] %s has no counter, auto-drawing %d", self.room_id, holder.name, penalty)
                s.message = f"{holder.name} had no counter! Auto-drew {penalty}"
                self._deal(holder, penalty)
                s.pending_draw_value = 0
                self._advance_turn(1)
                return

        holder.has_said_uno = False
        self._begin_turn()

    def _deal(self, player: Player, count: int) -> list[Card]:
        drawn = self.deck.draw(count, self.state.discard_pile)
        player.hand.extend(drawn)
        self.state.deck_count = len(self.deck)
        if len(drawn) < count:
            logger.warning(
                "[%s] Out of cards: %s drew %d of %d", self.room_id, player.name, len(drawn), count,
            )
        return drawn

    def _rotate_hands(self):
        """Every hand moves one seat in the direction of play."""
        s = self.state
        hands = [p.hand for p in s.players]
        if s.direction == 1:
            hands = hands[-1:] + hands[:-1]
        else:
            hands = hands[1:] + hands[:1]
        for player, hand in zip(s.players, hands):
            player.hand = hand

    def _swap_target(self, index: int, target_player_id: str | None) -> Player:
        s = self.state
        target_index = s.index_of(target_player_id) if target_player_id else -1
        if target_index in (-1, index):
            target_index = s.next_index(1)
        return s.players[target_index]

    def _end_game(self, winner: Player):
        s = self.state
        self._cancel_timers()
        s.status = GameStatus.GAME_OVER
        s.winner_id = winner.id
        s.message = f"{winner.name} WINS!"
        logger.info("[%s] %s won", self.room_id, winner.name)

        self._broadcast()

        if self.user_store is not None:
            players = list(s.players)
            self.scheduler.call_soon(lambda: self._settle(players, winner.id))

    def _settle(self, players: list[Player], winner_id: str):
        self.settlement = settle_match(self.user_store, players, winner_id, self.settings)

    # =========================================================================
    # Timers
    # =========================================================================

    def _start_turn_timer(self):
        if self._turn_timer is not None:
            self._turn_timer.cancel()
        serial = self._turn_serial
        self._turn_timer = self.scheduler.call_later(
            self.settings.turn_seconds, lambda: self._on_turn_timeout(serial),
        )

    @serialized
    def _on_turn_timeout(self, serial: int):
        """Holder draws one card, or absorbs a pending stack so no penalty is left unowned."""
        s = self.state
        if s.status != GameStatus.PLAYING or serial != self._turn_serial:
            return
        self._turn_timer = None

        holder = s.current_player
        logger.info("[%s] %s ran out of time", self.room_id, holder.name)
        if s.pending_draw_value > 0:
            penalty = s.pending_draw_value
            s.pending_draw_value = 0
            s.message = f"{holder.name} ran out of time! (+{penalty})"
        else:
            penalty = self.settings.timeout_penalty
            s.message = f"{holder.name} ran out of time!"

        self._deal(holder, penalty)
        self._finish_turn()

    def _arm_uno_check(self, player: Player):
        player_id = player.id
        previous = self._uno_timers.pop(player_id, None)
        if previous is not None:
            previous.cancel()
        logger.debug("[%s] %s is on one card without UNO", self.room_id, player.name)
        self._uno_timers[player_id] = self.scheduler.call_later(
            self.settings.uno_grace_seconds, lambda: self._on_uno_deadline(player_id),
        )

    @serialized
    def _on_uno_deadline(self, player_id: str):
        self._uno_timers.pop(player_id, None)
        s = self.state
        if s.status != GameStatus.PLAYING:
            return
        player = s.get_player(player_id)
        if player is None or player.hand_size != 1 or player.has_said_uno:
            return

        logger.info("[%s] %s forgot to say UNO", self.room_id, player.name)
        self._deal(player, self.settings.uno_penalty)
        s.message = f"{player.name} forgot to say UNO! +{self.settings.uno_penalty} cards"
        self._broadcast()

    def _schedule_bot_turn(self, follow_up: bool = False):
        """Queue the current holder's move if the seat is a bot."""
        self._cancel_bot_timer()
        s = self.state
        if s.status != GameStatus.PLAYING:
            return
        holder = s.current_player
        if holder is None or not holder.is_bot:
            return

        if follow_up:
            delay = self.settings.bot_follow_up_delay
        else:
            delay = self.rng.uniform(self.settings.bot_delay_min, self.settings.bot_delay_max)
        bot_id = holder.id
        serial = self._turn_serial
        self._bot_timer = self.scheduler.call_later(delay, lambda: self._run_bot_turn(bot_id, serial))

    @serialized
    def _run_bot_turn(self, bot_id: str, serial: int):
        s = self.state
        if s.status != GameStatus.PLAYING or serial != self._turn_serial:
            return
        if s.current_player.id != bot_id:
            return
        self._bot_timer = None

        decision = self.bot_policy.select_move(s.snapshot(), bot_id)
        logger.debug("[%s] %s decides: %s", self.room_id, s.current_player.name, decision.explanation)

        if decision.is_play:
            result = self.play_card(
                bot_id, decision.card_id, decision.chosen_color, decision.target_player_id,
            )
            if result:
                self._bot_uno_call(bot_id)
                return
            logger.warning("[%s] Bot move rejected: %s", self.room_id, result.error)

        if not s.has_drawn_this_turn:
            self.draw_card(bot_id)
        else:
            self.pass_turn(bot_id)

    def _bot_uno_call(self, bot_id: str):
        s = self.state
        bot = s.get_player(bot_id)
        if s.status != GameStatus.PLAYING or bot.hand_size != 1 or bot.has_said_uno:
            return
        if self.rng.random() < self.settings.bot_uno_recall:
            self.say_uno(bot_id)
        else:
            logger.info("[%s] %s forgot to say UNO", self.room_id, bot.name)

    def _cancel_bot_timer(self):
        if self._bot_timer is not None:
            self._bot_timer.cancel()
            self._bot_timer = None

    def _cancel_timers(self):
        self._cancel_bot_timer()
        if self._turn_timer is not None:
            self._turn_timer.cancel()
            self._turn_timer = None
        for timer in self._uno_timers.values():
            timer.cancel()
        self._uno_timers.clear()
