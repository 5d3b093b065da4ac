"""Tests for export and inheritance context analysis."""

from __future__ import annotations

import pytest

from tsdoc_normalizer.config import FormatterOptions
from tsdoc_normalizer.context import (
    ContextAnalyzer,
    comment_has_release_tag,
    comment_has_tag,
    context_from_host,
    context_from_snippet,
)
from tsdoc_normalizer.declarations import DeclarationTree, MemberDeclaration, scan_declarations
from tsdoc_normalizer.diagnostics import RecordingDiagnostics
from tsdoc_normalizer.errors import ContextError
from tsdoc_normalizer.models import ContainerKind, ExportContext, ExportKind


def analyze_last(source: str, options: FormatterOptions | None = None) -> ExportContext:
    """Return the context of the last doc comment in ``source``."""
    tree = scan_declarations(source)
    comment = tree.comments[-1]
    analyzer = ContextAnalyzer(options)
    return analyzer.analyze(tree.declaration_for(comment), tree, comment=comment)


DOC = "/**\n * Doc.\n */\n"


class TestContextAnalyzer:
    @pytest.mark.parametrize(
        ("declaration", "exported", "kind"),
        [
            ("export function load() {}", True, ExportKind.NAMED),
            ("function load() {}", False, ExportKind.NONE),
            ("export default function main() {}", True, ExportKind.DEFAULT),
            ("export interface Shape {}", True, ExportKind.NAMED),
            ("export type Id = string;", True, ExportKind.NAMED),
            ("export const enum Mode { A }", True, ExportKind.NAMED),
        ],
    )
    def test_top_level_exports(self, declaration: str, exported: bool, kind: ExportKind) -> None:
        context = analyze_last(f"const x = 1;\n{DOC}{declaration}\n")
        assert (context.is_exported, context.export_kind) == (exported, kind)
        assert not context.is_container_member

    def test_export_list_marks_declaration_exported(self) -> None:
        context = analyze_last(f"const x = 1;\n{DOC}function load() {{}}\nexport {{ load }};\n")
        assert context.is_exported

    def test_class_member_inherits(self) -> None:
        source = f"export class Widget {{\n{DOC}  render(): void {{}}\n}}\n"
        context = analyze_last(source)
        assert context.is_container_member
        assert context.container_kind is ContainerKind.CLASS
        assert context.is_exported
        assert context.should_inherit_release_tag

    def test_interface_member_without_inheritance(self) -> None:
        source = f"interface Shape {{\n{DOC}  area(): number;\n}}\n"
        context = analyze_last(source, FormatterOptions(inheritance_aware=False))
        assert context.container_kind is ContainerKind.INTERFACE
        assert not context.is_exported
        assert not context.should_inherit_release_tag

    def test_enum_property_with_tagged_parent(self) -> None:
        source = (
            "/**\n * Colors.\n * @enum\n * @public\n */\nexport const Colors = {\n"
            f"{DOC}  Red: 'red',\n}};\n"
        )
        context = analyze_last(source)
        assert context.is_enum_property
        assert context.enclosing_enum_has_release_tag
        assert context.should_inherit_release_tag
        assert context.is_exported

    def test_enum_property_with_untagged_parent(self) -> None:
        source = (
            "/**\n * Colors.\n * @enum\n */\nexport const Colors = {\n"
            f"{DOC}  Red: 'red',\n}};\n"
        )
        context = analyze_last(source)
        assert context.is_enum_property
        assert not context.enclosing_enum_has_release_tag
        assert not context.should_inherit_release_tag
        assert context.is_exported

    def test_plain_object_property_is_not_exported(self) -> None:
        source = f"export const config = {{\n{DOC}  port: 80,\n}};\n"
        context = analyze_last(source)
        assert not context.is_enum_property
        assert not context.is_exported

    def test_ambient_namespace_members_are_exported(self) -> None:
        source = f"declare namespace Lib {{\n{DOC}  function f(): void;\n}}\n"
        context = analyze_last(source)
        assert (context.is_exported, context.export_kind) == (True, ExportKind.NAMESPACE)

    def test_unexported_namespace_member(self) -> None:
        source = f"export namespace NS {{\n{DOC}  function hidden() {{}}\n}}\n"
        assert not analyze_last(source).is_exported

    def test_first_comment_without_declaration_is_file_comment(self) -> None:
        context = analyze_last("/**\n * File docs.\n */\n\nimport x from 'y';\n")
        assert context.export_kind is ExportKind.FILE
        assert context.is_exported

    def test_package_documentation_tag_marks_file_comment(self) -> None:
        source = (
            "const a = 1;\n/**\n * Pkg.\n * @packageDocumentation\n */\n"
            f"{DOC}function f() {{}}\n"
        )
        tree = scan_declarations(source)
        comment = tree.comments[0]
        context = ContextAnalyzer().analyze(tree.declaration_for(comment), tree, comment=comment)
        assert context.export_kind is ExportKind.FILE

    def test_failure_degrades(self) -> None:
        member = MemberDeclaration(index=0, name="m", start=0, parent=5)
        tree = DeclarationTree(source="", nodes=(member,))
        diagnostics = RecordingDiagnostics()
        context = ContextAnalyzer(diagnostics=diagnostics).analyze(member, tree)
        assert context == ExportContext.degraded()
        assert diagnostics.reasons("context") == ["declaration analysis failed"]


class TestHostContext:
    def test_exported(self) -> None:
        context = context_from_host({"isExported": True})
        assert (context.is_exported, context.export_kind) == (True, ExportKind.NAMED)

    def test_class_member(self) -> None:
        context = context_from_host({"isClassMember": True, "container": {"kind": "class"}})
        assert context.is_container_member
        assert context.container_kind is ContainerKind.CLASS
        assert context.should_inherit_release_tag

    def test_const_enum_property(self) -> None:
        context = context_from_host(
            {"isConstEnumProperty": True, "constEnumHasReleaseTag": True, "isExported": True}
        )
        assert context.is_enum_property
        assert context.should_inherit_release_tag

    def test_inheritance_disabled(self) -> None:
        options = FormatterOptions(inheritance_aware=False)
        context = context_from_host({"isClassMember": True}, options)
        assert not context.should_inherit_release_tag

    def test_invalid_values_raise(self) -> None:
        with pytest.raises(ContextError, match="Invalid host declaration context"):
            context_from_host({"isExported": "perhaps"})


@pytest.mark.parametrize(
    ("snippet", "exported", "member"),
    [
        ("export function load() {}", True, False),
        ("@Component()\nexport class A {}", True, False),
        ("function load() {}", False, False),
        ("  readonly size: number;", False, True),
        ("render(): void {", False, True),
        ("", False, False),
    ],
)
def test_context_from_snippet(snippet: str, exported: bool, member: bool) -> None:
    context = context_from_snippet(snippet)
    assert (context.is_exported, context.is_container_member) == (exported, member)


def test_context_from_snippet_default_export() -> None:
    assert context_from_snippet("export default class App {}").export_kind is ExportKind.DEFAULT


@pytest.mark.parametrize(
    ("text", "legacy", "expected"),
    [
        ("/**\n * @public\n */", True, True),
        ("/**\n * @export\n */", True, True),
        ("/**\n * @export\n */", False, False),
        ("/**\n * ```\n * @public\n * ```\n */", True, False),
        ("/**\n * See {@link internal}.\n */", True, False),
    ],
)
def test_comment_has_release_tag(text: str, legacy: bool, expected: bool) -> None:
    assert comment_has_release_tag(text, legacy=legacy) is expected


def test_comment_has_tag() -> None:
    assert comment_has_tag("/**\n * @enum\n */", "@enum")
    assert not comment_has_tag("/**\n * @enumerable\n */", "@enum")
