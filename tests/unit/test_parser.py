"""Tests for calmsync.parser: annotated D2 → Architecture."""

from __future__ import annotations

import logging

import pytest

import calmsync
from calmsync import grammar
from calmsync.exceptions import StructuralDecodeError
from calmsync.parser import AnnotatedParser, ParseState, parse_annotated
from calmsync.schema import NodeType, TransitionDirection

HAND_WRITTEN = """\
# @calm:id=shop
# @calm:name=Shop
direction: right

classes: {
  service: {
    shape: rectangle
  }
}

api: Public API {
  # @calm:id=api
  # @calm:owner=platform
  # @calm:metadata={"health-endpoint":"/health"}
  class: service
}
db: Orders {
  # @calm:id=db
  # @calm:type=database
  class: database
}

# Relationships
api -> db: JDBC {
  # @calm:id=api-db
  # @calm:type=connects
  # @calm:description=Stores orders
  # @calm:protocol=JDBC
  # @calm:encrypted=true
}
api -> db
# @calm:relationship={"unique-id":"sys","relationship-type":{"composed-of":{"container":"api","nodes":["db"]}}}

# Flows
# @calm:flow={"unique-id":"checkout","name":"Checkout"}
# @calm:flow-description=Buying things
# @calm:flow-step={"relationship-unique-id":"api-db","sequence-number":1,"description":"Store"}
# @calm:flow-step={"relationship-unique-id":"api-db","sequence-number":2,"direction":"destination-to-source"}
"""


class TestHandWritten:
    """Text written by hand with the annotation grammar."""

    def test_architecture(self) -> None:
        arch = parse_annotated(HAND_WRITTEN)
        assert arch.unique_id == "shop"
        assert arch.name == "Shop"

    def test_nodes(self) -> None:
        arch = parse_annotated(HAND_WRITTEN)
        assert arch.node_ids == ["api", "db"]
        api = arch.node("api")
        assert api.name == "Public API"
        assert api.node_type is NodeType.SERVICE
        assert api.owner == "platform"
        assert api.metadata == {"health-endpoint": "/health"}
        assert arch.node("db").node_type is NodeType.DATABASE

    def test_classes_block_is_not_a_node(self) -> None:
        assert "classes" not in parse_annotated(HAND_WRITTEN).node_ids

    def test_relationships(self) -> None:
        arch = parse_annotated(HAND_WRITTEN)
        assert [r.unique_id for r in arch.relationships] == ["api-db", "sys"]
        rel = arch.relationship("api-db")
        assert rel.connects.source.node == "api"
        assert rel.connects.destination.node == "db"
        assert rel.protocol == "JDBC"
        assert rel.encrypted is True
        assert arch.relationship("sys").composed_of.nodes == ["db"]

    def test_flow(self) -> None:
        flow = parse_annotated(HAND_WRITTEN).flow("checkout")
        assert flow.description == "Buying things"
        assert [t.sequence_number for t in flow.transitions] == [1, 2]
        assert flow.transitions[1].direction is TransitionDirection.DESTINATION_TO_SOURCE

    def test_crlf(self) -> None:
        assert parse_annotated(HAND_WRITTEN.replace("\n", "\r\n")) == parse_annotated(HAND_WRITTEN)


class TestLeniency:
    """Malformed values are skipped with a warning, not fatal."""

    def test_malformed_metadata(self, caplog: pytest.LogCaptureFixture) -> None:
        text = "n: N {\n  # @calm:id=n\n  # @calm:metadata={not json\n}\n"
        with caplog.at_level(logging.WARNING, logger="calmsync.parser"):
            arch = parse_annotated(text)
        assert arch.node("n").metadata == {}
        assert "metadata" in caplog.text

    def test_unknown_node_type(self) -> None:
        arch = parse_annotated("n: N {\n  # @calm:id=n\n  # @calm:type=mainframe\n}\n")
        assert arch.node("n").node_type is NodeType.SERVICE

    def test_node_type_spelling(self) -> None:
        arch = parse_annotated("n: N {\n  # @calm:id=n\n  # @calm:type=Web-Client\n}\n")
        assert arch.node("n").node_type is NodeType.WEB_CLIENT

    def test_malformed_relationship_line(self) -> None:
        text = '# @calm:relationship={"unique-id":"r","relationship-type":{}}\n'
        assert parse_annotated(text).relationships == []

    def test_bad_boolean(self) -> None:
        text = "a -> b {\n  # @calm:id=r\n  # @calm:encrypted=maybe\n}\n"
        assert parse_annotated(text).relationship("r").encrypted is None

    def test_bad_direction(self) -> None:
        text = (
            '# @calm:flow={"unique-id":"f"}\n'
            '# @calm:flow-step={"relationship-unique-id":"r","sequence-number":1,"direction":"sideways"}\n'
        )
        assert parse_annotated(text).flow("f").transitions == []

    def test_step_outside_flow(self) -> None:
        text = '# @calm:flow-step={"relationship-unique-id":"r","sequence-number":1}\n'
        assert parse_annotated(text).flows == []

    def test_unannotated_edge_dropped(self) -> None:
        assert parse_annotated("a -> b\n").relationships == []


class TestFatal:
    """Results that break model invariants are not returned."""

    def test_duplicate_node_ids(self) -> None:
        text = "a: A {\n  # @calm:id=x\n}\nb: B {\n  # @calm:id=x\n}\n"
        with pytest.raises(StructuralDecodeError):
            parse_annotated(text)


class TestState:
    """The parser tracks one open context at a time."""

    def test_starts_idle(self) -> None:
        parser = AnnotatedParser()
        assert parser._state is ParseState.NONE
        parser.parse("n: N {\n")
        assert parser._state is ParseState.NONE


class TestQuotedKeys:
    """Ids that are not plain diagram words travel as quoted keys."""

    def test_node_key_with_hash(self) -> None:
        arch = parse_annotated('# @calm:id=top\n"c#1": Counter {\n  # @calm:id=c#1\n}\n')
        assert arch.unique_id == "top"
        assert arch.node_ids == ["c#1"]

    def test_quoted_key_without_annotation(self) -> None:
        assert parse_annotated('"svc:api": API {\n}\n').node_ids == ["svc:api"]

    def test_quoted_edge_path(self) -> None:
        text = '"sys x"."svc:api" -> db: HTTP {\n  # @calm:id=r\n}\n'
        rel = parse_annotated(text).relationship("r")
        assert rel.connects.source.node == "svc:api"
        assert rel.connects.destination.node == "db"


class TestGrammar:
    """The line grammar module itself."""

    def test_not_shadowed_by_future_import(self) -> None:
        assert calmsync.grammar is grammar
        assert grammar.PREFIX == "# @calm:"

    def test_escape_inverse(self) -> None:
        text = "a=b\\c\nd\re"
        assert "\n" not in grammar.escape(text)
        assert grammar.unescape(grammar.escape(text)) == text

    def test_path_tail(self) -> None:
        assert grammar.path_tail("outer.inner") == "inner"
        assert grammar.path_tail('outer."v1.db"') == "v1.db"
        assert grammar.path_tail('"say \\"hi\\""') == 'say "hi"'
