class EchoDASError(Exception):
    pass


class ShapeMismatch(EchoDASError, ValueError):
    """
    array dimensions are inconsistent with the acquisition geometry

    Parameters
    ----------
    what : str
        name of the offending quantity, e.g. 'number of channels'
    expected, actual
        the expected and the received value
    """

    def __init__(self, what: str, expected, actual) -> None:
        self.what = what
        self.expected = expected
        self.actual = actual
        super().__init__("%s mismatch: expected %s, got %s" % (what, expected, actual))


class InvalidGeometry(EchoDASError, ValueError):
    pass


class DeviceError(EchoDASError, EnvironmentError):
    pass


class BeamformTimeout(EchoDASError, TimeoutError):
    pass
