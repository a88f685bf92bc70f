"""
Round Lifecycle：管理下注回合的完整生命週期

職責：
1. 建立回合（向結算服務取得 round_id，啟動結算計時器）
2. 處理加入、下注、斷線
3. 計時器到期時判定勝出彩池、封存、回報結算、廣播結果
4. 冷卻後嘗試建立下一回合

並發模型：
- 所有會改變 active round / 狀態機 / 下注紀錄的操作都在 self._lock 內執行
- 建立回合另外由 CreationGuard 保護，同一時間最多只有一個 mint 呼叫
- 計時器是單次的 asyncio.Task，是唯一能讓狀態離開 ACTIVE 與 COOLDOWN 的機制
- 所有外部呼叫都有 timeout，失敗時回到明確的狀態（IDLE 或 COOLDOWN）
- join / disconnect 的回覆在 lock 外送出；gateway 的每次 send 都有上限
"""
import asyncio
import logging
import random
import time
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Optional

from pydantic import ValidationError

from config import Settings, get_settings
from database import SessionLocal
from models import Bet, LifecycleState, Round
from schemas import BetRequest
from core.broadcast import BroadcastGateway
from core.exceptions import (
    InvalidBet,
    InvalidBetAmount,
    NoActiveRound,
    RoundAlreadyArchived,
    RoundCreationFailed,
    UnknownPot,
)
from core.locks import CreationGuard
from core.player_registry import PlayerRegistry
from core.state_machine import LifecycleStateMachine
from services.hand_service import deal_decorative_hands
from services.history_service import archive_round, is_archived
from services.naming_service import resolve_display_name
from services.payoff_service import (
    build_settlement_winners,
    calculate_pot_totals,
    calculate_total_winnings,
)
from services.pot_resolver import PotResolver, Resolution
from services.settlement_client import SettlementService

logger = logging.getLogger(__name__)

NEXT_ROUND_MESSAGE = "A new round is starting!"


def _handle_task_exception(task: asyncio.Task) -> None:
    """計時器 task 的異常不能被默默吃掉"""
    if task.cancelled():
        logger.debug(f"Task {task.get_name()} was cancelled")
        return
    exc = task.exception()
    if exc is not None:
        logger.error(
            f"Unhandled exception in task {task.get_name()}: {exc}",
            exc_info=(type(exc), exc, exc.__traceback__),
        )


class RoundLifecycle:
    """回合生命週期管理器（每個 process 一個）"""

    def __init__(
        self,
        registry: PlayerRegistry,
        gateway: BroadcastGateway,
        settlement: SettlementService,
        settings: Optional[Settings] = None,
        session_factory: Optional[Callable] = None,
        rng: Optional[random.Random] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.settings = settings or get_settings()
        self.registry = registry
        self.gateway = gateway
        self.settlement = settlement
        self._session_factory = session_factory or SessionLocal
        self._rng = rng or random.Random()
        self._clock = clock

        self.resolver = PotResolver(
            self.settings.pot_labels,
            oracle=settlement.fetch_winning_pot,
            rng=self._rng,
            oracle_timeout=self.settings.settlement_timeout,
        )

        self._machine = LifecycleStateMachine()
        self._guard = CreationGuard()
        self._lock = asyncio.Lock()
        self._active_round: Optional[Round] = None
        self._resolution_timers: Dict[str, asyncio.Task] = {}
        self._cooldown_task: Optional[asyncio.Task] = None
        self._closed = False

    # ============ 查詢 ============

    @property
    def state(self) -> LifecycleState:
        return self._machine.state

    @property
    def active_round(self) -> Optional[Round]:
        return self._active_round

    @property
    def creation_in_flight(self) -> bool:
        return self._guard.in_flight

    def time_remaining(self, round_obj: Round) -> float:
        """
        回合剩餘時間（秒）

        剩餘時間 <= 0（計時器即將觸發）時回報完整的回合長度，不回報負數
        """
        duration = self.settings.round_duration
        remaining = duration - (self._clock() - round_obj.started_at)
        return round(remaining if remaining > 0 else duration, 3)

    def round_state_payload(self, round_obj: Round) -> Dict[str, Any]:
        return {
            "round_id": round_obj.round_id,
            "time_remaining": self.time_remaining(round_obj),
            "participants": [dict(p) for p in round_obj.participants],
            "bets": round_obj.bets_view(),
        }

    def current_view(self) -> Dict[str, Any]:
        """HTTP /api/rounds/current 使用的快照"""
        view: Dict[str, Any] = {"state": self.state}
        round_obj = self._active_round
        if round_obj is not None:
            view.update(self.round_state_payload(round_obj))
        return view

    async def broadcast_player_statuses(self) -> None:
        players = list(self.registry.snapshot())
        await self.gateway.broadcast_all("player_status_updated", {"players": players})
        logger.debug(f"Broadcasted player statuses: {players}")

    # ============ 建立回合 ============

    def _is_reused_round_id(self, round_id: str) -> bool:
        # 封存表以 round_id 為 primary key，已結束的回合都在裡面
        with self._session_factory() as db:
            return is_archived(db, round_id)

    async def _mint_round_id(self) -> str:
        """
        向結算服務取得新的 round_id

        返回：
            round_id

        異常：
            RoundCreationFailed: 失敗、逾時、status 不是 success、或 id 已被使用過
        """
        metadata = {
            "name": self.settings.game_name,
            "description": self.settings.game_description,
        }
        try:
            round_id, status = await asyncio.wait_for(
                self.settlement.mint_round_id(metadata),
                timeout=self.settings.settlement_timeout,
            )
        except asyncio.TimeoutError as e:
            raise RoundCreationFailed(
                f"Round id mint timed out after {self.settings.settlement_timeout}s"
            ) from e
        except Exception as e:
            raise RoundCreationFailed(f"Error while creating round: {e}") from e

        if not round_id or status != "success":
            raise RoundCreationFailed(
                f"Failed to generate round id (id={round_id!r}, status={status!r})"
            )
        if self._is_reused_round_id(round_id):
            raise RoundCreationFailed(f"Settlement service returned reused round id {round_id}")
        return round_id

    async def _create_round(self) -> Optional[Round]:
        """
        建立新回合（呼叫者必須持有 self._lock）

        流程：
        1. 取得 CreationGuard，已有建立動作時直接放棄
        2. registry 為空時不建立
        3. 呼叫 mint 取得 round_id
        4. 以 registry 快照作為初始參與者建立 Round，啟動結算計時器

        返回：
            新的 Round；沒有建立時返回 None（狀態回到 IDLE）

        注意：
            這是唯一會產生 Round 物件的地方
        """
        with self._guard.attempt() as acquired:
            if not acquired:
                return self._active_round

            self._machine.transition(LifecycleState.CREATING)
            try:
                if self.registry.is_empty():
                    logger.info("No players in the room, round cannot start.")
                    return None

                try:
                    round_id = await self._mint_round_id()
                except RoundCreationFailed as e:
                    logger.error(f"Round creation failed: {e}")
                    return None

                round_obj = Round(
                    round_id=round_id,
                    started_at=self._clock(),
                    participants=list(self.registry.snapshot()),
                )
                self._active_round = round_obj
                self._machine.transition(LifecycleState.ACTIVE)
                self._arm_resolution_timer(round_id)

                logger.info(
                    f"Round {round_id} started with {len(round_obj.participants)} participants"
                )
                return round_obj
            finally:
                # 任何沒有進入 ACTIVE 的出口（包含 CancelledError）都回到 IDLE
                if self._machine.state == LifecycleState.CREATING:
                    self._machine.transition(LifecycleState.IDLE)

    def _arm_resolution_timer(self, round_id: str) -> None:
        task = asyncio.create_task(
            self._resolution_timer(round_id),
            name=f"resolve-round-{round_id}",
        )
        task.add_done_callback(_handle_task_exception)
        self._resolution_timers[round_id] = task

    async def _resolution_timer(self, round_id: str) -> None:
        try:
            await asyncio.sleep(self.settings.round_duration)
            await self.resolve_round(round_id)
        finally:
            self._resolution_timers.pop(round_id, None)

    # ============ 玩家事件 ============

    async def join(
        self,
        connection_id: str,
        player_id: str,
        name: Optional[str] = None,
        profile: Optional[str] = None,
    ) -> Optional[Dict[str, Any]]:
        """
        玩家加入

        流程：
        1. 寫入 registry（同一個 player_id 直接覆蓋）
        2. 沒有回合且狀態為 IDLE 時嘗試建立回合
        3. 有回合：加入參與者、廣播玩家列表、回覆 joined
        4. 冷卻中：廣播玩家列表、回覆 round_starting_soon（不提前建立回合）

        返回：
            joined payload；冷卻中返回 None

        異常：
            NoActiveRound: 建立回合失敗（客戶端需要自行重新 join）
        """
        player = self.registry.upsert(
            player_id, resolve_display_name(name), profile, connection_id
        )

        async with self._lock:
            if self._active_round is None and self.state == LifecycleState.IDLE:
                await self._create_round()

            round_obj = self._active_round
            if round_obj is None:
                if self.state == LifecycleState.IDLE:
                    raise NoActiveRound("No game is active.")
                payload = None
            else:
                round_obj.add_participant(player.public_view())
                payload = self.round_state_payload(round_obj)

        # 回覆在 lock 外送出，慢的連線不會卡住其他回合操作
        await self.broadcast_player_statuses()
        if payload is None:
            await self.gateway.reply_to(
                connection_id, "round_starting_soon", {"message": NEXT_ROUND_MESSAGE}
            )
            return None

        await self.gateway.reply_to(connection_id, "joined", payload)
        logger.info(f"Player {player_id} joined round {round_obj.round_id}")
        return payload

    def _validate_bet(
        self,
        player_id: str,
        amount: Any,
        pot: Any,
        asset: Optional[str],
    ) -> Bet:
        try:
            request = BetRequest(player_id=player_id, amount=amount, pot=pot, asset=asset)
        except ValidationError as e:
            fields = {str(error["loc"][0]) for error in e.errors() if error["loc"]}
            if "amount" in fields:
                raise InvalidBetAmount() from e
            raise InvalidBet(f"Invalid bet: {', '.join(sorted(fields)) or 'payload'}") from e

        if request.pot not in self.settings.pot_labels:
            raise UnknownPot(request.pot)

        return Bet(
            player_id=request.player_id,
            amount=request.amount,
            pot=request.pot,
            asset=request.asset,
        )

    async def place_bet(
        self,
        player_id: str,
        amount: Any,
        pot: Any,
        asset: Optional[str] = None,
    ) -> Bet:
        """
        下注

        異常：
            NoActiveRound: 沒有接受下注的回合
            InvalidBetAmount: 金額不是正數
            UnknownPot: 彩池不在設定的集合內

        不合法的下注不會寫入紀錄，也不會被廣播
        """
        async with self._lock:
            round_obj = self._active_round
            if round_obj is None or self.state != LifecycleState.ACTIVE:
                raise NoActiveRound("No ongoing round.")

            bet = self._validate_bet(player_id, amount, pot, asset)
            round_obj.bets.append(bet)

            payload = bet.to_dict()
            payload["round_id"] = round_obj.round_id
            await self.gateway.broadcast_all("bet_accepted", payload)

        logger.info(f"Player {player_id} placed a bet: {bet.amount} on {bet.pot}")
        return bet

    async def disconnect(self, connection_id: str) -> None:
        """
        連線中斷：從 registry 與目前回合的參與者中移除綁在這條連線上的所有玩家

        重複的斷線或從未 join 的連線不做任何事
        """
        players = self.registry.remove(connection_id)
        if not players:
            return

        async with self._lock:
            if self._active_round is not None:
                for player in players:
                    self._active_round.remove_participant(player.player_id)
        await self.broadcast_player_statuses()

    # ============ 結算 ============

    def _archive(self, round_obj: Round, resolution: Resolution) -> None:
        try:
            with self._session_factory() as db:
                archive_round(
                    db,
                    round_obj,
                    winning_pot=resolution.winning_pot,
                    resolution_source=resolution.source.value,
                    winners=resolution.winners,
                    ended_at=datetime.now(timezone.utc),
                )
        except RoundAlreadyArchived as e:
            logger.error(str(e))
        except Exception as e:
            logger.error(f"Failed to archive round {round_obj.round_id}: {e}", exc_info=True)

    async def _report_winners(self, round_id: str, winners) -> None:
        settlement_winners = build_settlement_winners(winners)
        try:
            acknowledged = await asyncio.wait_for(
                self.settlement.report_winners(round_id, settlement_winners),
                timeout=self.settings.settlement_timeout,
            )
        except asyncio.TimeoutError:
            logger.error(f"Failed to store winners for round {round_id}: timed out")
            return
        except Exception as e:
            logger.error(f"Failed to store winners for round {round_id}: {e}", exc_info=True)
            return

        if not acknowledged:
            logger.error(f"Failed to store winners for round {round_id}")

    async def resolve_round(self, round_id: str) -> Optional[Resolution]:
        """
        結算回合（由結算計時器呼叫）

        流程：
        1. 確認 round_id 是目前的回合（過期的計時器直接忽略）
        2. 判定勝出彩池與贏家
        3. 封存、回報結算服務（失敗只記 log）
        4. 廣播 round_ended
        5. 清除 active round，進入 COOLDOWN 並排程下一回合

        返回：
            Resolution；計時器過期時返回 None
        """
        async with self._lock:
            round_obj = self._active_round
            if (
                round_obj is None
                or round_obj.round_id != round_id
                or self.state != LifecycleState.ACTIVE
            ):
                logger.debug(f"Ignoring stale resolution timer for round {round_id}")
                return None

            self._machine.transition(LifecycleState.RESOLVING)
            try:
                bets = tuple(round_obj.bets)
                resolution = await self.resolver.resolve(bets, self.registry.get)
                self._archive(round_obj, resolution)
                await self._report_winners(round_id, resolution.winners)

                await self.gateway.broadcast_all("round_ended", {
                    "round_id": round_id,
                    "winners": resolution.winners,
                    "all_bets": round_obj.bets_view(),
                    "winning_pot": resolution.winning_pot,
                    "pot_totals": calculate_pot_totals(bets, self.settings.pot_labels),
                    "decorative_hands": deal_decorative_hands(self.settings.pot_labels, self._rng),
                })
                logger.info(
                    f"Round {round_id} ended! Winning pot {resolution.winning_pot} "
                    f"({resolution.source.value}), winnings: "
                    f"{calculate_total_winnings(resolution.winners)}"
                )
            finally:
                round_obj.bets.clear()
                self._active_round = None
                self._machine.transition(LifecycleState.COOLDOWN)
                self._schedule_cooldown()

        return resolution

    # ============ 冷卻與下一回合 ============

    def _schedule_cooldown(self) -> None:
        if self._closed:
            return
        task = asyncio.create_task(self._cooldown(), name="round-cooldown")
        task.add_done_callback(_handle_task_exception)
        self._cooldown_task = task

    async def _cooldown(self) -> None:
        await asyncio.sleep(self.settings.cooldown_delay)

        async with self._lock:
            if self.state != LifecycleState.COOLDOWN:
                return

            if self.registry.is_empty():
                logger.info("No players in the room, settling into IDLE.")
                self._machine.transition(LifecycleState.IDLE)
                return

            await self.gateway.broadcast_all("round_starting_soon", {"message": NEXT_ROUND_MESSAGE})

            round_obj = await self._create_round()
            if round_obj is None:
                logger.warning("Next round could not be created, waiting for a join")
                return

            await self.gateway.broadcast_all("joined", self.round_state_payload(round_obj))

    # ============ 關閉 ============

    async def shutdown(self) -> None:
        """取消所有計時器（lifespan 結束時呼叫）"""
        self._closed = True
        tasks = list(self._resolution_timers.values())
        if self._cooldown_task is not None:
            tasks.append(self._cooldown_task)

        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

        self._resolution_timers.clear()
        self._cooldown_task = None
        logger.info("Round lifecycle shut down")
