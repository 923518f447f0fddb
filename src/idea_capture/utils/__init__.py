from .race import race, RaceOutcome

__all__ = ['race', 'RaceOutcome']
