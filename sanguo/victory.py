"""Victory and defeat conditions, and the faction-elimination sweep."""
from __future__ import annotations
import logging

from .balance import BalanceConfig
from .types import GameState, GameStatus, Tier, WinType
from .world import WorldState

logger = logging.getLogger("sanguo.victory")


class VictoryEvaluator:
    def __init__(self, world: WorldState, balance: BalanceConfig, player_faction_id: str):
        self.world = world
        self.balance = balance
        self.player_faction_id = player_faction_id

    def _drop_faction(self, fid: str):
        w = self.world
        w.factions.remove(fid)
        w.alliances = {p for p in w.alliances if fid not in p}
        w.treaties = [t for t in w.treaties if not t.involves(fid)]
        w.trade_routes = [r for r in w.trade_routes if r.faction_id != fid]
        w.pending_routes = [r for r in w.pending_routes if r.faction_id != fid]
        w.transfers = [t for t in w.transfers if t.faction_id != fid]
        for city in w.cities.values():
            if city.siege and city.siege.faction_id == fid:
                w.clear_siege(city)

    def absorber_for(self, fid: str) -> str | None:
        """Strongest surviving rival: most cities, then most members, then id."""
        w = self.world
        rivals = [r for r in w.rivals_of(fid) if w.alive_members(r)]
        if not rivals:
            return None
        return sorted(rivals, key=lambda r: (-len(w.faction_cities(r)),
                                             -len(w.alive_members(r)), r))[0]

    def eliminate(self, events: list[str]) -> list[str]:
        w = self.world
        gone = []
        for faction in w.factions:
            fid = faction.id
            members = w.alive_members(fid)
            if not members:
                for city in w.cities.values():
                    if city.controller_id in faction.members or city.controller_id == faction.leader_id:
                        w.set_controller(city, None)
                self._drop_faction(fid)
                gone.append(fid)
                events.append(f"🏚️ {faction.name} has no one left and fades from history")
                logger.info("faction %s dissolved", fid)
                continue
            if fid == self.player_faction_id or w.faction_cities(fid):
                continue
            target = self.absorber_for(fid)
            if target is None:
                continue
            for m in members:
                w.join_faction(target, m.id)
            self._drop_faction(fid)
            gone.append(fid)
            events.append(f"☠️ {faction.name} is eliminated; its officers join {target}")
            logger.info("faction %s eliminated, absorbed by %s", fid, target)
        return gone

    def check(self, events: list[str]) -> GameState:
        w = self.world
        vb = self.balance.victory
        player = self.player_faction_id
        state = GameState(tick=w.tick)

        majors = [c for c in w.cities.values() if c.tier == Tier.MAJOR and not c.dead]
        owners = {w.city_faction(c) for c in majors}
        player_cities = w.faction_cities(player) if player in w.factions else []

        rivals = w.rivals_of(player)
        if player in w.factions and rivals and all(w.is_allied(player, r) for r in rivals):
            w.diplomatic_streak += 1
        else:
            w.diplomatic_streak = 0

        total_gold = sum(c.gold for c in w.controlled_cities() if w.city_faction(c))
        player_gold = sum(c.gold for c in player_cities)
        share = player_gold / total_gold if total_gold > 0 else 0.0
        if share > vb.economic_gold_share_threshold:
            w.economic_streak += 1
        else:
            w.economic_streak = 0

        if majors and len(owners) == 1 and None not in owners:
            winner = owners.pop()
            state.status = GameStatus.VICTORY if winner == player else GameStatus.DEFEAT
            state.winner_faction_id = winner
            state.win_type = WinType.CONQUEST
        elif w.tick > 0 and not player_cities:
            state.status = GameStatus.DEFEAT
        elif w.diplomatic_streak >= vb.diplomatic_consecutive_ticks:
            state.status = GameStatus.VICTORY
            state.winner_faction_id = player
            state.win_type = WinType.DIPLOMACY
        elif w.economic_streak >= vb.economic_consecutive_ticks:
            state.status = GameStatus.VICTORY
            state.winner_faction_id = player
            state.win_type = WinType.ECONOMY

        if state.terminal:
            how = state.win_type.value if state.win_type else "collapse"
            events.append(f"🏆 Game over: {state.status.value} ({how})")
            logger.info("game over at tick %d: %s %s", w.tick, state.status.value, how)
        w.game = state
        return state
