"""Diplomacy: relationships, alliances, trust, treaties, demands and betrayal."""
from __future__ import annotations
import itertools
import logging
import random

from .balance import BalanceConfig
from .commands import Demand, SowDiscord
from .types import (
    Betrayal, Character, DemandType, DiplomacyEvent, Role, Treaty, TreatyType,
    ALLIANCE_BREAK_INTIMACY, ALLIANCE_FORM_INTIMACY, CEASEFIRE_EXHAUSTION, GARRISON_CAP,
    TREATY_DURATION, TREATY_TRUST_THRESHOLD,
)
from .world import WorldState, pair_key

logger = logging.getLogger("sanguo.diplomacy")

FRIEND_THRESHOLD = 60
RIVAL_THRESHOLD = 30


def _clamp_p(p: float, lo: float, hi: float) -> float:
    return max(lo, min(hi, p))


class DiplomacyEngine:
    def __init__(self, world: WorldState, balance: BalanceConfig, player_faction_id: str,
                 rng: random.Random, garrison_cap=None):
        self.world = world
        self.balance = balance
        self.player_faction_id = player_faction_id
        self.rng = rng
        self.garrison_cap = garrison_cap or (lambda city: GARRISON_CAP[city.tier])

    def leader(self, fid: str) -> Character | None:
        faction = self.world.factions.get(fid)
        if faction is None:
            return None
        char = self.world.characters.get(faction.leader_id)
        return char if char and char.alive else None

    # ── Relationships ────────────────────────────────────────────────────

    def _relationship_pairs(self) -> list[tuple[str, str]]:
        w = self.world
        pairs = set(w.intimacy)
        leaders = [f.leader_id for f in w.factions]
        pairs.update(pair_key(a, b) for a, b in itertools.combinations(leaders, 2))
        return sorted(p for p in pairs
                      if all(c in w.characters and w.characters[c].alive for c in p))

    def relationship_decay(self):
        """Per-pair drift: shared traits pull characters together."""
        w = self.world
        for a, b in self._relationship_pairs():
            shared = len(set(w.characters[a].traits) & set(w.characters[b].traits))
            delta = 2 * shared if shared else -1
            w.adjust_intimacy(a, b, delta + self.rng.randint(-2, 2))

    def relationship_sync(self):
        w = self.world
        w.relations = {}
        for a, b in self._relationship_pairs():
            value = w.get_intimacy(a, b)
            if value >= FRIEND_THRESHOLD:
                w.relations[(a, b)] = "friend"
            elif value <= RIVAL_THRESHOLD:
                w.relations[(a, b)] = "rival"
            else:
                w.relations[(a, b)] = "neutral"

    # ── Alliances and trust ──────────────────────────────────────────────

    def evaluate_alliances(self, events: list[str]) -> list[DiplomacyEvent]:
        w = self.world
        out = []
        for fa, fb in itertools.combinations(w.factions.ids(), 2):
            la, lb = self.leader(fa), self.leader(fb)
            if la is None or lb is None:
                continue
            intimacy = w.get_intimacy(la.id, lb.id)
            allied = w.is_allied(fa, fb)
            if not allied and intimacy >= ALLIANCE_FORM_INTIMACY:
                w.set_alliance(fa, fb, True)
                w.adjust_trust(fa, fb, 10)
                out.append(DiplomacyEvent("alliance_formed", fa, fb))
                events.append(f"🤝 {la.name} and {lb.name} form an alliance")
            elif allied and intimacy <= ALLIANCE_BREAK_INTIMACY:
                w.set_alliance(fa, fb, False)
                w.adjust_trust(fa, fb, -15)
                out.append(DiplomacyEvent("alliance_broken", fa, fb))
                events.append(f"💔 The alliance between {la.name} and {lb.name} collapses")
        return out

    def trust_drift(self):
        w = self.world
        for a, b in sorted(w.alliances):
            if a not in w.factions or b not in w.factions:
                continue
            w.adjust_trust(a, b, 2 if w.treaty_between(a, b) else 1)

    # ── Treaties ─────────────────────────────────────────────────────────

    def propose_treaty(self, proposer: Character, fid: str, target_fid: str,
                       kind: TreatyType, events: list[str]) -> DiplomacyEvent | None:
        w = self.world
        if target_fid == fid or target_fid not in w.factions:
            return None
        if w.treaty_between(fid, target_fid, kind):
            logger.debug("duplicate %s between %s and %s dropped", kind.value, fid, target_fid)
            return None
        trust = w.get_trust(fid, target_fid)
        threshold = TREATY_TRUST_THRESHOLD[kind]
        accepted = False
        if trust >= threshold:
            p = 0.5 + (trust - threshold) / 100
            if proposer.role == Role.DIPLOMAT:
                p += 0.1
            accepted = self.rng.random() < p
        label = kind.value.replace("_", " ")
        if accepted:
            w.treaties.append(Treaty(kind, fid, target_fid, w.tick, w.tick + TREATY_DURATION[kind]))
            events.append(f"📜 {fid} and {target_fid} sign a {label} treaty")
            return DiplomacyEvent("treaty_signed", fid, target_fid, kind.value)
        w.adjust_trust(fid, target_fid, -5)
        events.append(f"📜 {target_fid} rejects the {label} treaty from {fid}")
        return DiplomacyEvent("treaty_rejected", fid, target_fid, kind.value)

    def update_treaties(self, events: list[str]) -> list[DiplomacyEvent]:
        w = self.world
        out = []
        kept = []
        for t in w.treaties:
            alive = t.faction_a in w.factions and t.faction_b in w.factions
            if not alive or w.tick >= t.expires_tick:
                if alive:
                    out.append(DiplomacyEvent("treaty_expired", t.faction_a, t.faction_b, t.kind.value))
                    events.append(f"⌛ The {t.kind.value.replace('_', ' ')} treaty between "
                                  f"{t.faction_a} and {t.faction_b} expires")
                continue
            kept.append(t)
        w.treaties = kept

        for t in w.treaties:
            if t.kind != TreatyType.MUTUAL_DEFENSE:
                continue
            for fid in (t.faction_a, t.faction_b):
                for city in w.faction_cities(fid):
                    cap = self.garrison_cap(city)
                    if city.siege is not None and city.garrison < cap:
                        w.adjust_garrison(city, 1, cap=cap)
                        events.append(f"🛡️ Allied troops reinforce besieged {city.name}")
        return out

    # ── Demands and discord ──────────────────────────────────────────────

    def resolve_demand(self, cmd: Demand, events: list[str]) -> DiplomacyEvent | None:
        w = self.world
        actor = w.characters.get(cmd.character_id)
        fid = w.faction_of(cmd.character_id)
        target = cmd.target_faction_id
        if actor is None or not actor.alive or fid is None or target == fid or target not in w.factions:
            logger.debug("demand from %s dropped", cmd.character_id)
            return None

        leader = self.leader(fid)
        p = (0.1
             + 0.02 * (w.get_prestige(leader.id) if leader else 0)
             + w.get_exhaustion(target) / 200
             + (w.get_morale(fid) - w.get_morale(target)) / 200
             + 0.03 * actor.skills.leadership
             + (0.1 if actor.role == Role.DIPLOMAT else 0))
        p = _clamp_p(p, 0.05, 0.9)
        accepted = self.rng.random() < p

        if not accepted:
            w.adjust_trust(fid, target, -10)
            events.append(f"✋ {target} refuses the {cmd.demand_type.value} demand of {fid}")
            return DiplomacyEvent("demand_refused", fid, target, cmd.demand_type.value)

        w.adjust_trust(fid, target, -5)
        if cmd.demand_type == DemandType.TRIBUTE:
            sources = w.faction_cities(target)
            home = w.cities.get(actor.city_id) if actor.city_id else None
            if home is None or w.city_faction(home) != fid:
                home = w.capital(fid)
            if sources and home is not None:
                richest = max(sources, key=lambda c: (c.gold, c.id))
                paid = min(max(0, cmd.amount), richest.gold)
                w.adjust_gold(richest, -paid)
                w.adjust_gold(home, paid)
                events.append(f"💰 {target} pays {paid} gold in tribute to {fid}")
        else:
            city = w.cities.get(cmd.target_city_id)
            if city and w.city_faction(city) == fid and city.siege and city.siege.faction_id == target:
                w.clear_siege(city)
                capital = w.capital(target)
                for c in w.characters_in(city.id):
                    if w.faction_of(c.id) == target:
                        w.move_character(c, capital.id if capital else None)
                events.append(f"🏳️ {target} withdraws from {city.name}")
        return DiplomacyEvent("demand_accepted", fid, target, cmd.demand_type.value)

    def resolve_sow_discord(self, cmd: SowDiscord, events: list[str]) -> DiplomacyEvent | None:
        w = self.world
        actor = w.characters.get(cmd.character_id)
        fid = w.faction_of(cmd.character_id)
        target = cmd.target_faction_id
        if actor is None or not actor.alive or fid is None or target == fid or target not in w.factions:
            return None
        city = w.cities.get(actor.city_id) if actor.city_id else None
        cost = self.balance.costs.sow_discord
        if city is None or w.city_faction(city) != fid or city.gold < cost:
            logger.debug("sow_discord from %s dropped: no funds", actor.id)
            return None
        allies = sorted(b if a == target else a for a, b in w.alliances if target in (a, b))
        if not allies:
            logger.debug("sow_discord from %s dropped: %s has no allies", actor.id, target)
            return None
        w.adjust_gold(city, -cost)

        ally = self.rng.choice(allies)
        p = _clamp_p(0.2 + 0.08 * actor.skills.espionage + 0.02 * actor.intelligence
                     - w.get_trust(target, ally) / 200, 0.05, 0.8)
        if self.rng.random() < p:
            w.set_alliance(target, ally, False)
            w.adjust_trust(target, ally, -20)
            la, lb = self.leader(target), self.leader(ally)
            if la and lb:
                w.adjust_intimacy(la.id, lb.id, -20)
            events.append(f"🐍 {actor.name} sows discord between {target} and {ally}")
            return DiplomacyEvent("discord_sown", target, ally, f"by {fid}")
        w.adjust_trust(fid, target, -15)
        events.append(f"🐍 {actor.name}'s intrigue against {target} is exposed")
        return DiplomacyEvent("discord_failed", fid, target)

    # ── Betrayal and ceasefire ───────────────────────────────────────────

    def betrayal_chance(self, char: Character, fid: str) -> tuple[float, str | None]:
        """Probability that a member defects, and the faction it would join."""
        w = self.world
        if "loyal" in char.traits:
            return 0.0, None
        p = 0.01 * (2 if "treacherous" in char.traits else 1)
        morale = w.get_morale(fid)
        if morale < 50:
            p += (50 - morale) / 1000
        fav = w.get_favorability(char.id)
        if fav < 50:
            p += (50 - fav) / 1000

        rivals = [r for r in w.rivals_of(fid) if w.alive_members(r)]
        if not rivals:
            return 0.0, None
        strongest = max(rivals, key=lambda r: (len(w.faction_cities(r)), r))
        if len(w.faction_cities(fid)) < len(w.faction_cities(strongest)):
            p += 0.01

        own_leader = self.leader(fid)
        own = w.get_intimacy(char.id, own_leader.id) if own_leader else 0
        best, best_val = None, own + 20
        for r in sorted(rivals):
            rl = self.leader(r)
            if rl and w.get_intimacy(char.id, rl.id) > best_val:
                best, best_val = r, w.get_intimacy(char.id, rl.id)
        if best is not None:
            p += 0.02
        return p, best or strongest

    def evaluate_betrayals(self, events: list[str]) -> list[Betrayal]:
        w = self.world
        if w.tick == 0:
            return []
        out = []
        defected: set[str] = set()
        for faction in w.factions:
            for char in w.alive_members(faction.id):
                if char.id == faction.leader_id or char.id in defected:
                    continue
                p, dest = self.betrayal_chance(char, faction.id)
                if dest is None or self.rng.random() >= p:
                    continue
                w.join_faction(dest, char.id)
                defected.add(char.id)
                w.mentorships = [m for m in w.mentorships if char.id not in m]
                out.append(Betrayal(char.id, faction.id, dest))
                events.append(f"🗡️ {char.name} betrays {faction.name} and joins {dest}")
                logger.info("%s defected from %s to %s", char.id, faction.id, dest)
        return out

    def ceasefires(self, events: list[str]) -> list[DiplomacyEvent]:
        w = self.world
        out = []
        for fa, fb in itertools.combinations(w.factions.ids(), 2):
            if w.is_allied(fa, fb) or w.treaty_between(fa, fb):
                continue
            if w.get_exhaustion(fa) > CEASEFIRE_EXHAUSTION and w.get_exhaustion(fb) > CEASEFIRE_EXHAUSTION:
                kind = TreatyType.NON_AGGRESSION
                w.treaties.append(Treaty(kind, fa, fb, w.tick, w.tick + TREATY_DURATION[kind]))
                out.append(DiplomacyEvent("ceasefire", fa, fb))
                events.append(f"🕊️ Exhausted by war, {fa} and {fb} agree to a ceasefire")
        return out
