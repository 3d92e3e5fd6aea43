# harvest_tracker/errors.py


class HarvestTrackerError(Exception):
    pass


class CapabilityUnavailable(HarvestTrackerError):
    """The device facility (location, share, clipboard) is not present at all."""


class AcquisitionFailed(HarvestTrackerError):
    """The location provider answered, but with an error or an unusable fix."""


class ValidationFailed(HarvestTrackerError):
    pass


class SubmissionRejected(HarvestTrackerError):
    """
    The ledger refused the record or could not be reached.
    Always retryable from the user's point of view.
    """


class ShareFailed(HarvestTrackerError):
    pass
