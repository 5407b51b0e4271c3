"""Tests for StatementLowerer — Go statements -> mlog with symbolic jumps."""

from __future__ import annotations

import pytest
import tree_sitter_language_pack

from mlogc.errors import (
    DanglingJumpTargetError,
    InvalidOperandError,
    LoweringError,
    MalformedAssignmentError,
    UnsupportedConstructError,
    UnsupportedOperatorError,
)
from mlogc.expressions import ExpressionLowerer
from mlogc.ir import (
    JumpTarget,
    MLOGInstruction,
    MLOGJump,
    MLOGTrampolineBack,
    NormalVariable,
    lit,
)
from mlogc.lowering_types import LoweringContext, LoweringOptions
from mlogc.render import render
from mlogc.statements import StatementLowerer


def _parse_body(body: str):
    source = f"package main\n\nfunc main() {{\n{body}\n}}\n"
    source_bytes = source.encode("utf-8")
    tree = tree_sitter_language_pack.get_parser("go").parse(source_bytes)
    func = next(c for c in tree.root_node.children if c.type == "function_declaration")
    return func.child_by_field_name("body"), source_bytes


def _statement_nodes(block) -> list:
    nodes = []
    for child in block.named_children:
        if child.type == "statement_list":
            nodes.extend(c for c in child.named_children if c.type != "comment")
        elif child.type != "comment":
            nodes.append(child)
    return nodes


def _lower(body: str, lowerer: StatementLowerer | None = None) -> list[MLOGInstruction]:
    block, source_bytes = _parse_body(body)
    ctx = LoweringContext(source=source_bytes)
    return (lowerer or StatementLowerer()).lower(block, ctx)


def _text(body: str) -> str:
    return render(_lower(body))


def _jumps(instructions: list[MLOGInstruction]) -> list[MLOGJump]:
    return [inst for inst in instructions if isinstance(inst, MLOGJump)]


class RecordingExpressionLowerer(ExpressionLowerer):
    """Stands in for expression lowering; records every request."""

    def __init__(self):
        self.calls: list[tuple[list[str], str]] = []

    def lower(self, destinations, node, ctx):
        self.calls.append(([d.render() for d in destinations], node.type))
        return [ctx.new_instruction([[lit("eval")] + list(destinations)], comment="eval")]


class TestBlocks:
    def test_empty_block_lowers_to_nothing(self):
        assert _lower("") == []

    def test_comments_are_skipped(self):
        assert _text("// nothing here\nx := 1") == "set x 1\n"

    def test_block_is_concatenation_of_statements(self):
        body = "a := 1\nb := a + 2\nif b > 2 {\n  a = 0\n}\nfor i := 0; i < 2; i++ {\n  b++\n}"
        block, source_bytes = _parse_body(body)
        whole = StatementLowerer().lower(block, LoweringContext(source=source_bytes))

        ctx = LoweringContext(source=source_bytes)
        lowerer = StatementLowerer()
        pieces: list[MLOGInstruction] = []
        for stmt in _statement_nodes(block):
            pieces.extend(lowerer.lower(stmt, ctx))

        assert whole == pieces

    def test_unsupported_statement_reports_its_type(self):
        with pytest.raises(UnsupportedConstructError) as exc_info:
            _lower("switch x {\ncase 1:\n  y := 2\n}")
        assert exc_info.value.node_type == "expression_switch_statement"
        assert "expression_switch_statement" in str(exc_info.value)

    def test_errors_share_a_base_class(self):
        with pytest.raises(LoweringError):
            _lower("goto end")


class TestSimpleStatements:
    def test_short_var_declaration(self):
        assert _text("x := 5") == "set x 5\n"

    def test_expression_statement_has_no_destination(self):
        recorder = RecordingExpressionLowerer()
        _lower("print(x)", StatementLowerer(recorder))
        assert recorder.calls == [([], "call_expression")]

    def test_increment(self):
        assert _text("x++") == "op add x x 1\n"

    def test_decrement(self):
        assert _text("x--") == "op sub x x 1\n"

    def test_increment_of_non_identifier_is_rejected(self):
        with pytest.raises(UnsupportedConstructError):
            _lower("a[0]++")

    def test_var_declaration_with_value(self):
        assert _text("var x = 5") == "set x 5\n"

    def test_var_declaration_without_value(self):
        assert _text("var y int") == "set y null\n"


class TestReturn:
    def test_bare_return_is_only_trampoline(self):
        instructions = _lower("return")
        assert len(instructions) == 1
        assert isinstance(instructions[0], MLOGTrampolineBack)

    def test_return_identifier_sets_return_slot(self):
        assert _text("return x") == (
            "set @return x\nop sub @stack @stack 1\nread @counter bank1 @stack\n"
        )

    def test_return_literal_sets_return_slot(self):
        assert _text("return 42").startswith("set @return 42\n")

    def test_return_expression_goes_through_temporary(self):
        assert _text("return a + b") == (
            "op add _dyn0 a b\n"
            "set @return _dyn0\n"
            "op sub @stack @stack 1\n"
            "read @counter bank1 @stack\n"
        )

    def test_multi_value_return_is_rejected(self):
        with pytest.raises(UnsupportedConstructError):
            _lower("return a, b")

    def test_return_ends_with_trampoline(self):
        instructions = _lower("return x")
        assert isinstance(instructions[-1], MLOGTrampolineBack)


class TestIf:
    def test_if_without_else_shape(self):
        assert _text("if x {\n  y := 1\n}") == (
            "jump 2 equal x true\n" "jump 3 always\n" "set y 1\n"
        )

    def test_if_skip_jump_targets_after_block(self):
        instructions = _lower("if x {\n  y := 1\n}")
        then_jump, skip_jump, body = instructions
        assert then_jump.target.instruction_id == body.id
        assert not then_jump.target.after
        assert skip_jump.target.instruction_id == body.id
        assert skip_jump.target.after

    def test_compound_condition_uses_temporary(self):
        assert _text("if a < b {\n  y = 1\n}") == (
            "op lessThan _dyn0 a b\n"
            "jump 3 equal _dyn0 true\n"
            "jump 4 always\n"
            "set y 1\n"
        )

    def test_initializer_is_lowered_first(self):
        text = _text("if v := 3; v > 2 {\n  y = v\n}")
        assert text.splitlines()[0] == "set v 3"
        assert text.splitlines()[1] == "op greaterThan _dyn0 v 2"

    def test_if_else_shape(self):
        assert _text("if x {\n  y = 1\n} else {\n  y = 2\n}") == (
            "jump 2 equal x true\n"
            "jump 4 always\n"
            "set y 1\n"
            "jump 5 always\n"
            "set y 2\n"
        )

    def test_skip_jump_retargeted_past_after_else_jump(self):
        instructions = _lower("if x {\n  y = 1\n} else {\n  y = 2\n}")
        skip_jump, after_else_jump = instructions[1], instructions[3]
        assert skip_jump.target.instruction_id == after_else_jump.id
        assert skip_jump.target.after

    def test_else_if_chain_nests(self):
        instructions = _lower(
            "if a {\n  x = 1\n} else if b {\n  x = 2\n} else {\n  x = 3\n}"
        )
        assert len(_jumps(instructions)) == 6
        assert all(j.target is not None for j in _jumps(instructions))

    def test_empty_if_body_is_rejected(self):
        with pytest.raises(UnsupportedConstructError):
            _lower("if x {\n}")

    def test_empty_else_body_is_rejected(self):
        with pytest.raises(UnsupportedConstructError):
            _lower("if x {\n  y = 1\n} else {\n}")


class TestFor:
    def test_do_while_shape(self):
        assert _text("for i := 0; i < 10; i++ {\n  s = s + i\n}") == (
            "set i 0\n" "op add s s i\n" "op add i i 1\n" "jump 1 lessThan i 10\n"
        )

    def test_loop_jump_targets_first_body_instruction(self):
        instructions = _lower("for i := 0; i < n; i++ {\n  s = i\n}")
        loop_jump = instructions[-1]
        assert loop_jump.target.instruction_id == instructions[1].id
        assert not loop_jump.target.after

    @pytest.mark.parametrize(
        "op, condition",
        [
            ("==", "equal"),
            ("!=", "notEqual"),
            ("<", "lessThan"),
            ("<=", "lessThanEq"),
            (">", "greaterThan"),
            (">=", "greaterThanEq"),
        ],
    )
    def test_operator_table(self, op, condition):
        text = _text(f"for i := 0; i {op} 5; i++ {{\n  s = i\n}}")
        assert text.splitlines()[-1] == f"jump 1 {condition} i 5"

    def test_empty_body_emits_nothing(self):
        assert _lower("for i := 0; i < 10; i++ {\n}") == []

    def test_empty_body_drops_side_effecting_init(self):
        assert _lower("for print(1); i < 10; i++ {\n}") == []

    def test_missing_init_and_post(self):
        assert _text("for ; i < 3; {\n  i++\n}") == "op add i i 1\njump 0 lessThan i 3\n"

    def test_range_loop_is_rejected(self):
        with pytest.raises(UnsupportedConstructError):
            _lower("for _, v := range xs {\n  s = v\n}")

    def test_condition_only_loop_is_rejected(self):
        with pytest.raises(UnsupportedConstructError):
            _lower("for i < 3 {\n  i++\n}")

    def test_empty_condition_only_loop_emits_nothing(self):
        assert _lower("for i < 3 {\n}") == []

    def test_empty_infinite_loop_emits_nothing(self):
        assert _lower("for {\n}") == []

    def test_empty_range_loop_emits_nothing(self):
        assert _lower("for _, v := range xs {\n}") == []

    def test_non_binary_condition_is_rejected(self):
        with pytest.raises(UnsupportedConstructError):
            _lower("for i := 0; done; i++ {\n  s = i\n}")

    def test_unknown_jump_operator(self):
        with pytest.raises(UnsupportedOperatorError):
            _lower("for i := 0; i & 4; i++ {\n  s = i\n}")

    def test_compound_operand_is_invalid(self):
        with pytest.raises(InvalidOperandError):
            _lower("for i := 0; i+1 < 10; i++ {\n  s = i\n}")

    def test_call_operand_is_invalid(self):
        with pytest.raises(InvalidOperandError):
            _lower("for i := 0; i < size(); i++ {\n  s = i\n}")

    def test_nested_loops_resolve_inner_and_outer(self):
        text = _text(
            "for i := 0; i < 2; i++ {\n"
            "  for j := 0; j < 2; j++ {\n"
            "    n++\n"
            "  }\n"
            "}"
        )
        assert text == (
            "set i 0\n"
            "set j 0\n"
            "op add n n 1\n"
            "op add j j 1\n"
            "jump 2 lessThan j 2\n"
            "op add i i 1\n"
            "jump 1 lessThan i 2\n"
        )


class TestAssignment:
    def test_n_to_n(self):
        assert _text("a, b := 1, 2") == "set a 1\nset b 2\n"

    def test_plain_assignment(self):
        assert _text("a = b") == "set a b\n"

    def test_n_to_n_pairs_lowered_independently(self):
        recorder = RecordingExpressionLowerer()
        _lower("a, b = x, y", StatementLowerer(recorder))
        assert recorder.calls == [(["a"], "identifier"), (["b"], "identifier")]

    def test_n_to_one_passes_all_destinations(self):
        recorder = RecordingExpressionLowerer()
        instructions = _lower("a, b := pair()", StatementLowerer(recorder))
        assert recorder.calls == [(["a", "b"], "call_expression")]
        assert len(instructions) == 1
        assert instructions[0].statement[0][1:] == [
            NormalVariable(name="a"),
            NormalVariable(name="b"),
        ]

    def test_n_to_one_with_native_lowerer_is_unsupported(self):
        with pytest.raises(UnsupportedConstructError):
            _lower("a, b := pair()")

    def test_mismatched_sides(self):
        with pytest.raises(MalformedAssignmentError):
            _lower("a, b = 1, 2, 3")

    def test_compound_operator_is_rejected(self):
        with pytest.raises(UnsupportedConstructError):
            _lower("x += 1")

    def test_non_identifier_target_is_rejected(self):
        with pytest.raises(UnsupportedConstructError):
            _lower("p.x = 1")

    def test_non_identifier_target_in_n_to_one(self):
        recorder = RecordingExpressionLowerer()
        with pytest.raises(UnsupportedConstructError):
            _lower("a, xs[0] = pair()", StatementLowerer(recorder))
        assert recorder.calls == []


class ForeignJumpExpressionLowerer(ExpressionLowerer):
    """Returns a jump pointing at an instruction outside the lowered list."""

    def lower(self, destinations, node, ctx):
        return [
            ctx.new_jump(
                [lit("always")],
                comment="foreign",
                target=JumpTarget(instruction_id=999),
            )
        ]


class PendingJumpExpressionLowerer(ExpressionLowerer):
    """Returns a jump whose target was never filled in."""

    def lower(self, destinations, node, ctx):
        return [ctx.new_jump([lit("always")], comment="pending")]


class TestJumpFinalization:
    def test_if_rejects_jump_outside_its_instructions(self):
        with pytest.raises(DanglingJumpTargetError):
            _lower("if a < b {\n  y = 1\n}", StatementLowerer(ForeignJumpExpressionLowerer()))

    def test_if_rejects_pending_jump(self):
        with pytest.raises(DanglingJumpTargetError):
            _lower("if a < b {\n  y = 1\n}", StatementLowerer(PendingJumpExpressionLowerer()))

    def test_for_rejects_jump_outside_its_instructions(self):
        with pytest.raises(DanglingJumpTargetError):
            _lower(
                "for i := 0; i < 3; i++ {\n  y = i\n}",
                StatementLowerer(ForeignJumpExpressionLowerer()),
            )

    def test_finalized_if_targets_stay_inside_the_list(self):
        instructions = _lower("if a < b {\n  y = 1\n} else {\n  y = 2\n}")
        ids = {inst.id for inst in instructions}
        assert all(j.target.instruction_id in ids for j in _jumps(instructions))


class TestContextIsolation:
    def test_temporaries_restart_per_context(self):
        first = _text("return a + b")
        second = _text("return a + b")
        assert first == second

    def test_options_do_not_change_lowering(self):
        block, source_bytes = _parse_body("if x {\n  y = 1\n}")
        plain = StatementLowerer().lower(block, LoweringContext(source=source_bytes))
        decorated = StatementLowerer().lower(
            block,
            LoweringContext(
                source=source_bytes, options=LoweringOptions(numbers=True, comments=True)
            ),
        )
        assert plain == decorated
