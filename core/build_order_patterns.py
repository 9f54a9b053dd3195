import logging
from collections import Counter
from typing import Dict, List, Optional, Sequence, Tuple

from models.replay_records import BuildOrderStep
from utils.sc2_unit_kinds import EXPANSIONS, KEY_BUILDINGS

OPENING_LENGTH = 10
TIMING_TOLERANCE_SECONDS = 30


class BuildOrderPatternMatcher:
    """
    Compares early-game build signatures and names the strategy behind them.

    A signature holds the consolidated early game (consecutive identical steps merged),
    the first ten consolidated entries as the opening sequence, and the first time each
    key structure appears.
    """

    def __init__(self, early_game_seconds: float = 360, similarity_threshold: float = 0.7,
                 logger: Optional[logging.Logger] = None):
        self.early_game_seconds = early_game_seconds
        self.similarity_threshold = similarity_threshold
        self.logger = logger or logging.getLogger(__name__)

    def create_signature(self, steps: Sequence[BuildOrderStep]) -> dict:
        """Create a signature for build order pattern with consolidated units"""
        ordered = sorted(steps, key=lambda s: s.time_seconds)
        early_game_steps = [s for s in ordered if s.time_seconds <= self.early_game_seconds]

        consolidated = self.consolidate_build_order(early_game_steps)
        key_timings: Dict[str, float] = {}
        for step in ordered:
            if step.name in KEY_BUILDINGS and step.name not in key_timings:
                key_timings[step.name] = step.time_seconds

        return {
            'early_game': consolidated,
            'key_timings': key_timings,
            'opening_sequence': consolidated[:OPENING_LENGTH],
        }

    @staticmethod
    def consolidate_build_order(steps: Sequence[BuildOrderStep]) -> List[dict]:
        """Consolidate consecutive identical units with counts and order information"""
        consolidated: List[dict] = []
        for step in steps:
            if consolidated and consolidated[-1]['unit'] == step.name:
                consolidated[-1]['count'] += 1
                consolidated[-1]['time'] = step.time_seconds
            else:
                consolidated.append({
                    'unit': step.name,
                    'count': 1,
                    'order': len(consolidated) + 1,
                    'time': step.time_seconds,
                })
        return consolidated

    @staticmethod
    def calculate_similarity(current: dict, known: dict) -> float:
        """Calculate similarity between two build signatures, 0.0 to 1.0"""
        score = 0.0
        total_weight = 0.0

        def units(entries):
            return {entry['unit'] for entry in entries}

        # Early game similarity
        if current['early_game'] and known['early_game']:
            current_units, known_units = units(current['early_game']), units(known['early_game'])
            score += len(current_units & known_units) / len(current_units | known_units) * 0.4  # 40% weight
            total_weight += 0.4

        # Building sequence similarity
        if current['opening_sequence'] and known['opening_sequence']:
            current_seq, known_seq = units(current['opening_sequence']), units(known['opening_sequence'])
            score += len(current_seq & known_seq) / len(current_seq | known_seq) * 0.3  # 30% weight
            total_weight += 0.3

        # Timing similarity
        shared = set(current['key_timings']) & set(known['key_timings'])
        if shared:
            timing_matches = sum(
                1 for building in shared
                if abs(current['key_timings'][building] - known['key_timings'][building]) <= TIMING_TOLERANCE_SECONDS
            )
            score += timing_matches / len(shared) * 0.3  # 30% weight
            total_weight += 0.3

        # Normalize score
        if total_weight > 0:
            return score / total_weight
        return 0.0

    @staticmethod
    def classify_strategy(signature: dict) -> str:
        """Classify the strategy type based on the early game of a signature"""
        early_game = signature.get('early_game', [])
        economic_count = sum(1 for e in early_game if any(eco in e['unit'] for eco in EXPANSIONS))

        for entry in early_game:
            unit_name = entry['unit']
            if 'Pool' in unit_name:
                return "zerg_aggression"
            elif 'Barracks' in unit_name:
                return "terran_aggression"
            elif 'Gateway' in unit_name:
                return "protoss_aggression"
            elif any(eco in unit_name for eco in EXPANSIONS) and economic_count >= 2:
                return "economic_expansion"

        return "standard_opening"

    @staticmethod
    def most_frequent_step(steps: Sequence[BuildOrderStep]) -> str:
        counts = Counter(step.name for step in steps)
        if not counts:
            return ""
        return counts.most_common(1)[0][0]

    def match(self, current: Sequence[BuildOrderStep],
              previous_builds: Sequence[Sequence[BuildOrderStep]]) -> Tuple[str, int]:
        """
        Name the current build by the most frequent label among previously seen builds
        that resemble it. Returns (label, number of matching previous builds); with no
        match the current build's own label is used.
        """
        current_signature = self.create_signature(current)
        own_label = self.classify_strategy(current_signature)

        labels = Counter()
        for previous in previous_builds:
            signature = self.create_signature(previous)
            similarity = self.calculate_similarity(current_signature, signature)
            if similarity >= self.similarity_threshold:
                labels[self.classify_strategy(signature)] += 1

        if not labels:
            self.logger.debug(f"No similar previous builds, classified on its own as {own_label}")
            return own_label, 0

        # ties go to the current build's own label
        best_count = max(labels.values())
        tied = [label for label, count in labels.items() if count == best_count]
        label = own_label if own_label in tied else tied[0]
        self.logger.debug(f"Build matched {sum(labels.values())} previous builds, labels {dict(labels)} -> {label}")
        return label, sum(labels.values())
