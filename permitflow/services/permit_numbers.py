import logging
import re
from datetime import datetime
from permitflow.models.application import BuildingApplication, OccupancyApplication

logger = logging.getLogger(__name__)

SEQUENCE_DIGITS = 6


def period_key(moment=None):
    """YYMM for the given moment (defaults to now)"""
    moment = moment or datetime.utcnow()
    return moment.strftime('%y%m')


class PermitNumberGenerator:
    """Issues ``YYMM`` + 6-digit permit numbers.

    The sequence is shared by Building and Occupancy permits within a
    year-month. Each population is queried on its own and the results are
    merged here; there is no cross-population lock, so two concurrent
    issuances can compute the same number. The unique constraint on
    ``applications.permit_number`` makes the loser's commit fail instead
    of storing a duplicate.
    """

    MODELS = (BuildingApplication, OccupancyApplication)

    def __init__(self, session):
        self.session = session

    def _latest_for(self, model, prefix):
        pattern = re.compile(rf'^{prefix}\d{{{SEQUENCE_DIGITS}}}$')
        candidates = self.session.query(model.permit_number).filter(
            model.application_type == model.__mapper_args__['polymorphic_identity'],
            model.permit_number.like(f'{prefix}%')
        ).order_by(model.permit_number.desc()).all()
        for (permit_number,) in candidates:
            if pattern.match(permit_number):
                return permit_number
        return None

    def generate(self, period=None):
        prefix = period or period_key()
        latest = [self._latest_for(model, prefix) for model in self.MODELS]
        sequences = [int(number[-SEQUENCE_DIGITS:]) for number in latest if number]

        sequence = max(sequences) + 1 if sequences else 1
        permit_number = f'{prefix}{sequence:0{SEQUENCE_DIGITS}d}'
        logger.info('Generated permit number %s', permit_number)
        return permit_number
