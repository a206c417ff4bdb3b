class RetryStrategy:
    def __call__(self):
        return 0


class BoundedRetryStrategy(RetryStrategy):
    """
    Counts connection attempts and decides when to give up.

    Calling the strategy returns the delay before the next attempt.
    The attempt count is the number of attempts since the last successful connection.

    >>> retry = BoundedRetryStrategy(5, 2)
    >>> retry.attempt()
    1
    >>> retry.exhausted
    False
    >>> retry.attempt()
    2
    >>> retry.exhausted
    True
    >>> retry.reset()
    >>> retry.attempts
    0
    """

    def __init__(self, interval, max_attempts=-1):
        """
        :param interval: seconds to wait between attempts
        :param max_attempts: the number of attempts allowed before giving up. Negative for no limit.
            The first attempt is always allowed.
        """
        self.interval = interval
        self.max_attempts = max_attempts
        self.attempts = 0

    def __call__(self):
        return self.interval

    @property
    def bounded(self):
        return self.max_attempts >= 0

    @property
    def exhausted(self):
        return self.bounded and self.attempts >= max(self.max_attempts, 1)

    def attempt(self):
        """ records a new attempt and returns the attempt number. """
        self.attempts += 1
        return self.attempts

    def reset(self):
        """ called on successful connection. """
        self.attempts = 0
