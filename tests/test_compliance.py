"""Tests for detailed template validation, repair and sentinel substitution."""

import pytest

from storyloom.generation.compliance import (
    REQUIRED_SECTIONS,
    SENTINEL_VALUES,
    check_placeholders,
    check_sections,
    check_shot_count,
    count_shot_lines,
    repair_template,
    shot_list_header,
    strip_leaked_headings,
    substitute_sentinels,
    validate_template,
)
from storyloom.generation.styles import FALLBACK_STYLES, resolve_style


class TestPredicates:
    """Each predicate returns a reason code or None."""

    def test_compliant_document_has_no_reasons(self, make_template):
        """A well-formed document passes every predicate."""
        text = make_template()
        assert check_placeholders(text) is None
        assert check_sections(text) is None
        assert check_shot_count(text, 4) is None

    def test_brackets_and_braces_flagged(self):
        """Any leftover [ ] { } is a placeholder."""
        assert check_placeholders("bgm: {music}") == "placeholders-present"
        assert check_placeholders("lens: [50mm]") == "placeholders-present"
        assert check_placeholders("lens: (50mm)") is None

    def test_missing_section_flagged(self, make_template):
        """Dropping one required header is reported."""
        text = make_template(sections=("LOGLINE", "VISUAL GRAMMAR", "AUDIO", "CONSTRAINTS"))
        assert check_sections(text) == "missing-sections"

    def test_section_match_is_case_sensitive(self, make_template):
        """Lower-case headers do not count."""
        text = make_template().replace("CONSTRAINTS", "Constraints")
        assert check_sections(text) == "missing-sections"

    def test_shot_count_mismatch_reports_found_count(self, make_template):
        """The reason code carries the number of shot lines found."""
        text = make_template(shots=3, header="SHOT LIST (4 shots / 10.00s)")
        assert check_shot_count(text, 4) == "invalid-shot-count:3"

    def test_shot_line_variants_counted(self):
        """En dash, hyphen, optional 's' and bullet prefixes are all shot lines."""
        text = "\n".join(
            [
                "0–2.5s — wide shot",
                "2.5-5 - medium shot",
                "- 5–7.5s — close-up",
                "7.5 – 10s — aerial",
            ]
        )
        assert count_shot_lines(text) == 4

    def test_header_and_prose_not_counted(self):
        """The shot list header and ordinary lines are not shot lines."""
        text = "SHOT LIST (4 shots / 10.00s)\nThe chase lasts 10 seconds.\nlens: 35mm"
        assert count_shot_lines(text) == 0


class TestRepair:
    """Deterministic repair."""

    def test_header_restated_from_authoritative_values(self, make_template):
        """Whatever the oracle wrote, the header reads (4 shots / 10.00s)."""
        text = make_template(header="SHOT LIST (3 shots / 9s)")
        repaired = repair_template(text, 4, 10.0)
        assert "SHOT LIST (4 shots / 10.00s)" in repaired
        assert "(3 shots / 9s)" not in repaired

    def test_header_format(self):
        assert shot_list_header(4, 10.0) == "SHOT LIST (4 shots / 10.00s)"
        assert shot_list_header(3, 7) == "SHOT LIST (3 shots / 7.00s)"

    def test_leaked_headings_stripped(self, make_template):
        """Instructional headings never reach the output."""
        text = make_template(prefix_lines=("Project brief:", "Output format (replace braces):"))
        text += "\nGuidelines:\n작성 지침:"
        repaired = repair_template(text, 4, 10.0)
        for heading in ("Project brief:", "Output format", "Guidelines:", "작성 지침:"):
            assert heading not in repaired

    def test_strip_keeps_other_lines(self):
        """Only denylisted heading lines are removed."""
        text = "Input details:\nLOGLINE\nA story."
        assert strip_leaked_headings(text) == "LOGLINE\nA story."

    @pytest.mark.parametrize(
        "header,prefix",
        [
            ("SHOT LIST (2 shots / 3s)", ("Guidelines:",)),
            ("SHOT LIST", ()),
            ("SHOT LIST (4 shots / 10.00s)", ("프로젝트 개요:", "Detailed guidelines:")),
        ],
    )
    def test_repair_is_idempotent(self, make_template, header, prefix):
        """Repairing twice equals repairing once."""
        text = make_template(header=header, prefix_lines=prefix)
        once = repair_template(text, 4, 10.0)
        assert repair_template(once, 4, 10.0) == once

    def test_repair_does_not_add_shot_lines(self, make_template):
        """Repair fixes the header only; body count is still validated."""
        result = validate_template(make_template(shots=2), 4, 10.0)
        assert "invalid-shot-count:2" in result.reasons


class TestValidateTemplate:
    """Combined validation over the repaired candidate."""

    def test_compliant(self, make_template):
        result = validate_template(make_template(), 4, 10.0)
        assert result.compliant
        assert result.reasons == frozenset()

    def test_repair_can_make_candidate_compliant(self, make_template):
        """Wrong header plus leaked heading is fixed without regeneration."""
        text = make_template(header="SHOT LIST (9 shots / 1s)", prefix_lines=("Guidelines:",))
        result = validate_template(text, 4, 10.0)
        assert result.compliant
        assert "Guidelines:" not in result.repaired_text

    def test_collects_all_reasons(self, make_template):
        """Independent predicates are reported together."""
        text = make_template(shots=2, sections=("LOGLINE",), bgm_value="{music}")
        result = validate_template(text, 4, 10.0)
        assert not result.compliant
        assert result.reasons == {"missing-sections", "invalid-shot-count:2"}

    def test_input_not_mutated(self, make_template):
        """Validation returns a new candidate string."""
        text = make_template(prefix_lines=("Guidelines:",))
        result = validate_template(text, 4, 10.0)
        assert text.startswith("Guidelines:")
        assert result.repaired_text != text

    def test_zero_shot_count_floored_to_one(self, make_template):
        result = validate_template(make_template(shots=1, duration=8.0), 0, 8.0)
        assert result.compliant
        assert "SHOT LIST (1 shots / 8.00s)" in result.repaired_text
        assert "(0 shots" not in result.repaired_text


class TestSentinelSubstitution:
    """Sentinel values are replaced by style-derived wording."""

    def test_bgm_auto_replaced(self):
        style = resolve_style("noir")
        out = substitute_sentinels("bgm: auto", style, "en")
        assert out == f"bgm: {style.bgm}"

    def test_prefix_and_label_case_preserved(self):
        style = resolve_style("sci-fi")
        out = substitute_sentinels("- Voice Tone: (미정)", style, "ko")
        assert out == f"- Voice Tone: {style.vo_tone}"

    def test_unknown_label_untouched(self):
        out = substitute_sentinels("mood: auto", resolve_style("noir"), "en")
        assert out == "mood: auto"

    def test_concrete_value_untouched(self):
        out = substitute_sentinels("lighting: auto-exposure flicker", resolve_style("noir"), "en")
        assert out == "lighting: auto-exposure flicker"

    def test_other_lines_preserved(self, make_template):
        """Only sentinel lines change."""
        text = make_template()
        out = substitute_sentinels(text, resolve_style("noir"), "en")
        assert len(out.splitlines()) == len(text.splitlines())
        assert "lens: 35mm" in out

    @pytest.mark.parametrize("language", ["en", "ko"])
    @pytest.mark.parametrize("sentinel", sorted(SENTINEL_VALUES) + ["AUTO", '"auto"', "[unspecified]"])
    @pytest.mark.parametrize(
        "label",
        ["style", "lighting", "lens", "grade/texture", "bgm", "sfx", "voice", "voice tone", "dialogue"],
    )
    def test_no_sentinel_leakage(self, label, sentinel, language):
        """A recognized sentinel line never keeps its sentinel token."""
        for style in FALLBACK_STYLES:
            out = substitute_sentinels(f"{label}: {sentinel}", style, language)
            value = out.split(":", 1)[1].lower()
            for token in SENTINEL_VALUES:
                assert token not in value


def test_required_sections_have_no_brackets():
    """Headers themselves never trip the placeholder check."""
    for section in REQUIRED_SECTIONS:
        assert check_placeholders(section) is None
