"""Tests for the document tree model and the export side outputs."""

from __future__ import annotations

import pytest

from docexport.models import DocumentNode, FootnoteCollector, Letterhead, Mark, TocEntry


class TestDocumentNode:
    def test_from_dict(self):
        node = DocumentNode.from_dict({
            "type": "paragraph",
            "attrs": {"textAlign": "center"},
            "content": [{"type": "text", "text": "Bonjour", "marks": [{"type": "bold"}]}],
        })
        assert node.type == "paragraph"
        assert node.attr("textAlign") == "center"
        assert node.content[0].text == "Bonjour"
        assert node.content[0].marks == [Mark("bold")]

    def test_text_node_loses_children(self):
        node = DocumentNode.from_dict({
            "type": "text",
            "text": "x",
            "content": [{"type": "text", "text": "y"}],
        })
        assert node.content == []

    def test_container_loses_marks(self):
        node = DocumentNode.from_dict({"type": "heading", "marks": [{"type": "bold"}]})
        assert node.marks == []

    def test_non_mapping_rejected(self):
        with pytest.raises(TypeError):
            DocumentNode.from_dict(["doc"])

    def test_walk_is_pre_order(self):
        node = DocumentNode.from_dict({
            "type": "doc",
            "content": [
                {"type": "heading", "content": [{"type": "text", "text": "A"}]},
                {"type": "paragraph"},
            ],
        })
        assert [n.type for n in node.walk()] == ["doc", "heading", "text", "paragraph"]

    def test_plain_text(self):
        node = DocumentNode.from_dict({
            "type": "heading",
            "content": [
                {"type": "text", "text": "Objet "},
                {"type": "text", "text": "du contrat", "marks": [{"type": "italic"}]},
            ],
        })
        assert node.plain_text() == "Objet du contrat"

    def test_to_dict(self):
        data = {
            "type": "paragraph",
            "content": [{"type": "text", "text": "a", "marks": [{"type": "link", "attrs": {"href": "https://x.fr"}}]}],
        }
        assert DocumentNode.from_dict(data).to_dict() == data

    def test_attr_default(self):
        node = DocumentNode("image", attrs={"width": None})
        assert node.attr("width", 400) == 400


class TestSideOutputs:
    def test_footnote_ordinals(self):
        collector = FootnoteCollector()
        first = collector.add("Art. 1103 C. civ.")
        second = collector.add("Cass. civ. 1re")
        assert (first.ordinal, second.ordinal) == (1, 2)
        assert len(collector) == 2
        assert [r.content for r in collector.records] == ["Art. 1103 C. civ.", "Cass. civ. 1re"]

    def test_collectors_are_independent(self):
        FootnoteCollector().add("a")
        assert len(FootnoteCollector()) == 0

    def test_toc_display_text(self):
        assert TocEntry(1, "I.", "Objet").display_text == "I. Objet"
        assert TocEntry(5, None, "Annexe").display_text == "Annexe"


class TestHeadingWalk:
    def test_headings_in_containers_are_found(self):
        node = DocumentNode.from_dict({"type": "doc", "content": [
            {"type": "heading", "content": [{"type": "text", "text": "A"}]},
            {"type": "bulletList", "content": [
                {"type": "heading", "content": [{"type": "text", "text": "B"}]},
            ]},
            {"type": "table", "content": [{"type": "tableRow", "content": [
                {"type": "heading", "content": [{"type": "text", "text": "C"}]},
            ]}]},
        ]})
        assert [h.plain_text() for h in node.headings()] == ["A", "B", "C"]

    def test_leaves_are_not_entered(self):
        node = DocumentNode.from_dict({"type": "doc", "content": [
            {"type": "codeBlock", "content": [{"type": "heading"}]},
            {"type": "footnote", "content": [{"type": "heading"}]},
            {"type": "image", "content": [{"type": "heading"}]},
        ]})
        assert list(node.headings()) == []

    def test_nested_heading_follows_its_parent(self):
        node = DocumentNode.from_dict({"type": "heading", "attrs": {"level": 1}, "content": [
            {"type": "heading", "attrs": {"level": 2}},
        ]})
        assert [h.attr("level") for h in node.headings()] == [1, 2]


class TestLetterhead:
    def test_profile_keys(self):
        letterhead = Letterhead.from_dict({
            "cabinet": "Cabinet Martin",
            "civilite": "Me",
            "prenom": "Claire",
            "nom": "Martin",
            "adresse": "12 rue de la Paix",
            "codePostal": "75002",
            "ville": "Paris",
            "telephone": "01 23 45 67 89",
            "email": "c.martin@example.fr",
            "barreau": "Paris",
            "numeroToque": 123,
            "signature": "ignored",
        })
        assert letterhead.firm == "Cabinet Martin"
        assert letterhead.bar_number == "123"
        assert letterhead.full_name == "Me Claire Martin"
        assert letterhead.full_address == "12 rue de la Paix, 75002 Paris"
        assert letterhead.contact_line == "Tél. 01 23 45 67 89 – c.martin@example.fr"
        assert letterhead.bar_line == "Barreau de Paris – Toque 123"

    def test_field_names(self):
        letterhead = Letterhead.from_dict({"last_name": "Martin", "city": "Lyon"})
        assert letterhead.full_name == "Martin"
        assert letterhead.full_address == "Lyon"

    def test_partial_lines(self):
        letterhead = Letterhead(email="a@b.fr", bar="Lyon")
        assert letterhead.contact_line == "a@b.fr"
        assert letterhead.bar_line == "Barreau de Lyon"
        assert Letterhead().bar_line == ""

    def test_empty(self):
        assert Letterhead(email="a@b.fr").is_empty()
        assert not Letterhead(firm="Cabinet").is_empty()
        assert not Letterhead(last_name="Martin").is_empty()
