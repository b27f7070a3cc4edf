"""
Property-based tests for Audit Logger module.

Uses Hypothesis to check output formats, level filtering, masking of
sensitive values and the context attached to error entries.
"""

import json
import threading
from io import StringIO

import pytest
from hypothesis import given, settings, assume
from hypothesis import strategies as st

from domain_resolver.audit_logger import MASK_VALUE, AuditLogger, mask_sensitive_data
from domain_resolver.config import LoggingConfig
from domain_resolver.enums import LogLevel, ResolverErrorCode
from domain_resolver.exceptions import QueryTimeoutError, ResolverError


SENSITIVE_PATTERNS = [
    'token', 'secret', 'password', 'api_key', 'auth', 'authorization',
    'credential', 'private_key', 'access_token', 'cookie',
]


# Strategies for generating valid test data

def log_level_strategy():
    return st.sampled_from(list(LogLevel))


def component_name_strategy():
    """Component names as the package uses them, plus arbitrary identifiers."""
    return st.one_of(
        st.sampled_from([
            "Resolver", "DNSQuerySource", "DoHQuerySource",
            "StaticQuerySource", "SerialDispatchQueue",
        ]),
        st.from_regex(r"[A-Za-z][A-Za-z0-9_-]{0,40}", fullmatch=True),
    )


@st.composite
def message_strategy(draw) -> str:
    """Generate valid log messages."""
    return draw(st.text(
        alphabet=st.characters(
            whitelist_categories=('L', 'N', 'P', 'S', 'Z'),
            blacklist_characters='\x00\n\r',
        ),
        min_size=1,
        max_size=200,
    ))


@st.composite
def non_sensitive_key_strategy(draw) -> str:
    """Generate keys that are NOT sensitive."""
    key = draw(st.text(
        alphabet=st.sampled_from("abcdefghijklmnopqrstuvwxyz_"),
        min_size=1,
        max_size=20,
    ))
    for pattern in SENSITIVE_PATTERNS:
        assume(pattern not in key)
    assume(key not in ("error_message", "error_type", "error_code"))
    return key


@st.composite
def sensitive_key_strategy(draw) -> str:
    """Generate keys that ARE sensitive."""
    base = draw(st.sampled_from(SENSITIVE_PATTERNS + ['credentials', 'Authorization', 'API_KEY']))
    prefix = draw(st.sampled_from(['', 'my_', 'doh_', 'upstream_']))
    suffix = draw(st.sampled_from(['', '_value', '_header', '_1']))
    return f"{prefix}{base}{suffix}"


@st.composite
def simple_value_strategy(draw):
    """Generate simple JSON-serializable values."""
    return draw(st.one_of(
        st.text(min_size=0, max_size=50),
        st.integers(min_value=-1000, max_value=1000),
        st.floats(allow_nan=False, allow_infinity=False, min_value=-1000, max_value=1000),
        st.booleans(),
        st.none(),
    ))


@st.composite
def non_sensitive_data_strategy(draw) -> dict:
    """Generate data dictionaries without sensitive keys."""
    return draw(st.dictionaries(
        non_sensitive_key_strategy(),
        simple_value_strategy(),
        max_size=5,
    ))


class TestDualFormatProperty:
    """Property-based tests for the json, text and both output formats."""

    @given(
        level=log_level_strategy(),
        component=component_name_strategy(),
        message=message_strategy(),
        data=non_sensitive_data_strategy(),
    )
    @settings(max_examples=100)
    def test_dual_format_produces_both_outputs(
        self,
        level: LogLevel,
        component: str,
        message: str,
        data: dict,
    ) -> None:
        """
        *For any* log entry when output_format is "both", the logger SHALL
        produce a valid JSON line followed by a human-readable text line.
        """
        output = StringIO()
        logger = AuditLogger(output_format="both", output_stream=output, level=LogLevel.DEBUG)

        logger.log(level, component, message, data)

        lines = output.getvalue().rstrip("\n").split("\n")
        assert len(lines) == 2

        parsed_json = json.loads(lines[0])
        assert parsed_json["level"] == level.value
        assert parsed_json["component"] == component
        assert parsed_json["message"] == message
        assert parsed_json["data"] == data
        assert "timestamp" in parsed_json

        assert level.value.upper() in lines[1]
        assert f"[{component}]" in lines[1]
        assert message in lines[1]

    @given(
        level=log_level_strategy(),
        component=component_name_strategy(),
        message=message_strategy(),
    )
    @settings(max_examples=100)
    def test_json_only_format(self, level: LogLevel, component: str, message: str) -> None:
        """*For any* entry with output_format "json", exactly one JSON line SHALL be written."""
        output = StringIO()
        logger = AuditLogger(output_format="json", output_stream=output, level=LogLevel.DEBUG)

        entry = logger.log(level, component, message)

        lines = [l for l in output.getvalue().rstrip("\n").split("\n") if l]
        assert len(lines) == 1
        assert json.loads(lines[0]) == json.loads(logger.format_json(entry))

    @given(
        level=log_level_strategy(),
        component=component_name_strategy(),
        message=message_strategy(),
    )
    @settings(max_examples=100)
    def test_text_only_format(self, level: LogLevel, component: str, message: str) -> None:
        """*For any* entry with output_format "text", exactly one text line SHALL be written."""
        output = StringIO()
        logger = AuditLogger(output_format="text", output_stream=output, level=LogLevel.DEBUG)

        entry = logger.log(level, component, message)

        lines = [l for l in output.getvalue().rstrip("\n").split("\n") if l]
        assert lines == [logger.format_text(entry)]

    def test_invalid_format_rejected(self) -> None:
        with pytest.raises(ValueError):
            AuditLogger(output_format="xml")

    def test_from_config(self) -> None:
        output = StringIO()
        logger = AuditLogger.from_config(
            LoggingConfig(level="warn", output_format="json"),
            output_stream=output,
        )

        assert logger.output_format == "json"
        assert logger.level is LogLevel.WARN


class TestLevelFilteringProperty:
    """Property tests for the minimum level."""

    @given(
        minimum=log_level_strategy(),
        level=log_level_strategy(),
        message=message_strategy(),
    )
    @settings(max_examples=100)
    def test_entries_below_minimum_dropped(
        self,
        minimum: LogLevel,
        level: LogLevel,
        message: str,
    ) -> None:
        """
        *For any* minimum level, an entry SHALL be written exactly when its
        severity is at least the minimum.
        """
        output = StringIO()
        logger = AuditLogger(output_format="text", output_stream=output, level=minimum)

        entry = logger.log(level, "Resolver", message)

        if level.severity >= minimum.severity:
            assert entry is not None
            assert logger.entries == [entry]
            assert output.getvalue()
        else:
            assert entry is None
            assert logger.entries == []
            assert output.getvalue() == ""

    def test_level_helpers(self) -> None:
        logger = AuditLogger(output_stream=StringIO(), level=LogLevel.DEBUG)

        logger.debug("Resolver", "one")
        logger.info("Resolver", "two")
        logger.warn("Resolver", "three")

        assert [e.level for e in logger.entries] == [LogLevel.DEBUG, LogLevel.INFO, LogLevel.WARN]

        logger.clear()
        assert logger.entries == []

    def test_concurrent_writers_keep_lines_whole(self) -> None:
        output = StringIO()
        logger = AuditLogger(output_format="json", output_stream=output)

        def write(worker: int) -> None:
            for i in range(50):
                logger.info(f"worker-{worker}", "entry", {"index": i})

        threads = [threading.Thread(target=write, args=(n,)) for n in range(4)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        lines = output.getvalue().rstrip("\n").split("\n")
        assert len(lines) == 200
        assert all(json.loads(line)["message"] == "entry" for line in lines)
        assert {json.loads(line)["thread"] for line in lines} == {t.name for t in threads}


class TestEntryHistoryProperty:
    """Property tests for the in-memory entry history."""

    @given(
        max_entries=st.integers(min_value=1, max_value=20),
        count=st.integers(min_value=0, max_value=50),
    )
    @settings(max_examples=50)
    def test_history_keeps_most_recent(self, max_entries: int, count: int) -> None:
        """*For any* bound, the logger SHALL keep only the latest max_entries entries."""
        logger = AuditLogger(output_stream=StringIO(), max_entries=max_entries)

        for i in range(count):
            logger.info("Resolver", f"entry {i}")

        kept = [e.message for e in logger.entries]
        assert kept == [f"entry {i}" for i in range(max(0, count - max_entries), count)]

    def test_non_positive_bound_rejected(self) -> None:
        with pytest.raises(ValueError):
            AuditLogger(max_entries=0)

    def test_entry_records_writing_thread(self) -> None:
        logger = AuditLogger(output_format="text", output_stream=StringIO())
        entries = []

        thread = threading.Thread(
            target=lambda: entries.append(logger.info("ThreadingTimerScheduler", "fired")),
            name="resolver-timer",
        )
        thread.start()
        thread.join()

        assert entries[0].thread == "resolver-timer"
        assert "(resolver-timer)" in logger.format_text(entries[0])


class TestSensitiveDataMaskingProperty:
    """Property-based tests for sensitive data masking."""

    @given(
        sensitive_key=sensitive_key_strategy(),
        sensitive_value=st.text(
            alphabet=st.sampled_from("QWXYZ"),
            min_size=5,
            max_size=20,
        ),
        component=component_name_strategy(),
        message=message_strategy(),
    )
    @settings(max_examples=100)
    def test_sensitive_data_masked(
        self,
        sensitive_key: str,
        sensitive_value: str,
        component: str,
        message: str,
    ) -> None:
        """
        *For any* log entry data containing keys matching sensitive patterns,
        the values SHALL be replaced with "***MASKED***".
        """
        output = StringIO()
        logger = AuditLogger(output_format="json", output_stream=output)

        entry = logger.info(component, message, {sensitive_key: sensitive_value})

        assert entry.data[sensitive_key] == AuditLogger.MASK_VALUE
        parsed = json.loads(output.getvalue().strip())
        assert parsed["data"][sensitive_key] == AuditLogger.MASK_VALUE

    @given(
        non_sensitive_key=non_sensitive_key_strategy(),
        value=st.text(min_size=1, max_size=50),
    )
    @settings(max_examples=100)
    def test_non_sensitive_data_not_masked(self, non_sensitive_key: str, value: str) -> None:
        """*For any* key without a sensitive pattern, the value SHALL be preserved."""
        logger = AuditLogger(output_format="json", output_stream=StringIO())

        entry = logger.info("Resolver", "message", {non_sensitive_key: value})

        assert entry.data[non_sensitive_key] == value

    @given(
        sensitive_key=sensitive_key_strategy(),
        sensitive_value=st.text(min_size=1, max_size=50),
    )
    @settings(max_examples=100)
    def test_nested_sensitive_data_masked(self, sensitive_key: str, sensitive_value: str) -> None:
        """*For any* nesting of dicts and lists, sensitive values SHALL be masked at every level."""
        logger = AuditLogger(output_format="json", output_stream=StringIO())

        data = {
            "doh": {
                "headers": [{sensitive_key: sensitive_value, "accept": "application/dns-json"}],
                "endpoint": "https://dns.example/dns-query",
            }
        }
        entry = logger.info("DoHQuerySource", "configured", data)

        header = entry.data["doh"]["headers"][0]
        assert header[sensitive_key] == AuditLogger.MASK_VALUE
        assert header["accept"] == "application/dns-json"
        assert entry.data["doh"]["endpoint"] == "https://dns.example/dns-query"
        # The caller's dict is left alone.
        assert data["doh"]["headers"][0][sensitive_key] == sensitive_value

    def test_masking_walks_tuples_and_nested_lists(self) -> None:
        data = {"upstreams": ([{"token": "abc"}], {"name": "dns.example"})}

        assert mask_sensitive_data(data) == {
            "upstreams": [[{"token": MASK_VALUE}], {"name": "dns.example"}],
        }
        assert mask_sensitive_data("plain") == "plain"


class TestErrorContextProperty:
    """Property-based tests for error context logging."""

    @given(
        component=component_name_strategy(),
        message=message_strategy(),
        error_message=message_strategy(),
    )
    @settings(max_examples=100)
    def test_error_logs_include_error_context(
        self,
        component: str,
        message: str,
        error_message: str,
    ) -> None:
        """
        *For any* error-level entry with an exception, the data SHALL contain
        the error message and type.
        """
        logger = AuditLogger(output_format="json", output_stream=StringIO())

        entry = logger.log_error(component, message, error=RuntimeError(error_message))

        assert entry.level is LogLevel.ERROR
        assert entry.data["error_message"] == error_message
        assert entry.data["error_type"] == "RuntimeError"
        assert "error_code" not in entry.data

    @given(code=st.sampled_from(list(ResolverErrorCode)).filter(
        lambda c: c is not ResolverErrorCode.SYSTEM
    ))
    @settings(max_examples=20)
    def test_error_code_included_for_package_errors(self, code: ResolverErrorCode) -> None:
        """*For any* ResolverError, the entry SHALL carry its string code."""
        logger = AuditLogger(output_format="json", output_stream=StringIO())

        entry = logger.log_error("Resolver", "canceled", error=ResolverError(code))

        assert entry.data["error_code"] == code.value
        assert entry.data["error_type"] == "ResolverError"

    @given(
        error_message=message_strategy(),
        additional_key=non_sensitive_key_strategy(),
        additional_value=st.text(min_size=1, max_size=30),
    )
    @settings(max_examples=100)
    def test_error_logs_preserve_additional_data(
        self,
        error_message: str,
        additional_key: str,
        additional_value: str,
    ) -> None:
        """*For any* additional_data, it SHALL be kept alongside the error context."""
        logger = AuditLogger(output_format="json", output_stream=StringIO())
        additional_data = {additional_key: additional_value}

        entry = logger.log_error(
            "DNSQuerySource",
            "lookup failed",
            error=QueryTimeoutError(error_message),
            additional_data=additional_data,
        )

        assert entry.data[additional_key] == additional_value
        assert entry.data["error_code"] == "query_timeout"
        assert additional_data == {additional_key: additional_value}

    def test_error_without_exception(self) -> None:
        logger = AuditLogger(output_format="json", output_stream=StringIO())

        entry = logger.log_error("Resolver", "something odd", additional_data={"target": "example.com"})

        assert entry.data == {"target": "example.com"}

    def test_error_entries_dropped_only_above_error(self) -> None:
        logger = AuditLogger(output_stream=StringIO(), level=LogLevel.ERROR)

        assert logger.warn("Resolver", "quiet") is None
        assert logger.log_error("Resolver", "loud") is not None
