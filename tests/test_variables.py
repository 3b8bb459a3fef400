"""Tests for placeholder resolution."""

from __future__ import annotations

from datetime import date

from docexport.variables import (
    CurrentPageFragment,
    LiteralFragment,
    TotalPagesFragment,
    VariableResolver,
    format_date,
    render_fragments,
)

TODAY = date(2024, 3, 5)


class TestDateFormat:
    def test_numeric_tokens(self):
        assert format_date("DD/MM/YYYY", TODAY) == "05/03/2024"
        assert format_date("D/M/YY", TODAY) == "5/3/24"

    def test_month_name(self):
        assert format_date("D MMMM YYYY", TODAY) == "5 mars 2024"

    def test_other_characters_kept(self):
        assert format_date("YYYY-MM-DD", date(2023, 12, 31)) == "2023-12-31"


class TestStaticResolution:
    def test_document_values(self):
        resolver = VariableResolver(title="Contrat", number="2024-017", today=TODAY)
        text = "{{document.title}} n° {{document.numero}}"
        assert resolver.resolve_static(text) == "Contrat n° 2024-017"

    def test_date_placeholder(self):
        resolver = VariableResolver(today=TODAY)
        assert resolver.resolve_static('Le {{date.format("DD/MM/YYYY")}}') == "Le 05/03/2024"

    def test_unknown_placeholder_left_verbatim(self):
        resolver = VariableResolver(title="Contrat", today=TODAY)
        assert resolver.resolve_static("{{client.name}}") == "{{client.name}}"

    def test_malformed_date_left_verbatim(self):
        resolver = VariableResolver(today=TODAY)
        text = '{{date.format("DD/MM}}'
        assert resolver.resolve_static(text) == text

    def test_page_tokens_untouched(self):
        resolver = VariableResolver(title="Contrat", today=TODAY)
        assert resolver.resolve_static("{{page.current}}") == "{{page.current}}"

    def test_empty_text(self):
        assert VariableResolver(today=TODAY).resolve_static("") == ""


class TestPageAwareResolution:
    def test_fragments(self):
        resolver = VariableResolver(title="Contrat", today=TODAY)
        fragments = resolver.resolve("{{document.title}} - p.{{page.current}}/{{page.total}}")
        assert fragments == [
            LiteralFragment("Contrat - p."),
            CurrentPageFragment(),
            LiteralFragment("/"),
            TotalPagesFragment(),
        ]

    def test_literals_never_hold_page_tokens(self):
        resolver = VariableResolver(today=TODAY)
        fragments = resolver.resolve("{{page.current}}{{page.total}} sur {{page.total}}")
        assert fragments == [
            CurrentPageFragment(),
            TotalPagesFragment(),
            LiteralFragment(" sur "),
            TotalPagesFragment(),
        ]

    def test_plain_text_is_one_literal(self):
        resolver = VariableResolver(today=TODAY)
        assert resolver.resolve("Confidentiel") == [LiteralFragment("Confidentiel")]

    def test_render_is_pure(self):
        resolver = VariableResolver(today=TODAY)
        fragments = resolver.resolve("Page {{page.current}} / {{page.total}}")
        assert render_fragments(fragments, 2, 9) == "Page 2 / 9"
        assert render_fragments(fragments, 3, 9) == "Page 3 / 9"
        assert render_fragments(fragments, 2, 9) == "Page 2 / 9"

    def test_render_shortcut(self):
        resolver = VariableResolver(number="A-1", today=TODAY)
        assert resolver.render("{{document.numero}} ({{page.current}})", 4, 10) == "A-1 (4)"

