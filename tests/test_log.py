import io
import unittest

from elktail.utils.log import ERROR, INFO, TRACE, NullLogger, TailLogger


class TailLoggerTests(unittest.TestCase):
    def test_threshold_filters_lower_levels(self) -> None:
        stream = io.StringIO()
        logger = TailLogger(stream=stream, threshold=INFO)
        logger.trace("hidden")
        logger.info("shown")
        logger.error("also shown")

        lines = stream.getvalue().splitlines()
        self.assertEqual(len(lines), 2)
        self.assertRegex(lines[0], r"^\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2}Z INFO shown$")
        self.assertTrue(lines[1].endswith("ERROR also shown"))

    def test_from_verbosity(self) -> None:
        self.assertEqual(TailLogger.from_verbosity().threshold, ERROR)
        self.assertEqual(TailLogger.from_verbosity(verbose=True).threshold, INFO)
        self.assertEqual(TailLogger.from_verbosity(more_verbose=True).threshold, TRACE)

        logger = TailLogger.from_verbosity(trace_requests=True)
        self.assertEqual(logger.threshold, TRACE)
        self.assertTrue(logger.trace_requests)

    def test_null_logger_writes_nothing(self) -> None:
        logger = NullLogger()
        logger.stream = io.StringIO()
        logger.error("ignored")
        self.assertEqual(logger.stream.getvalue(), "")
        self.assertFalse(logger.trace_requests)


if __name__ == "__main__":
    unittest.main()
