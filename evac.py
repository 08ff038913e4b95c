#!/usr/bin/env python3
"""
Eva Compiler

Usage:
    python evac.py <source_file> [-o output] [--emit-ir] [--emit-ast]

Examples:
    python evac.py hello.eva                    # Produces hello.ll (LLVM IR)
    python evac.py hello.eva -o hello.o         # Produces hello.o (object file only)
    python evac.py hello.eva -o hello           # Produces hello (linked executable)
    python evac.py hello.eva --emit-ir          # Print LLVM IR
    python evac.py hello.eva --emit-ast         # Print AST
    python evac.py -e '(printf "%d\\n" 42)'      # Compile program text to out.ll
"""

import sys
import os
import argparse
import subprocess
from typing import Dict, List as PyList, Optional

from eva_parser import parse, parse_file, format_ast
from codegen import CodeGenerator, CompileError
from codegen.core import DEFAULT_GLOBALS


def parse_defines(defines: PyList[str]) -> Dict[str, int]:
    """Turn NAME=VALUE strings into extra integer globals."""
    result = {}
    for define in defines:
        name, sep, value = define.partition("=")
        if not sep or not name:
            raise CompileError(f"Invalid define '{define}' (expected NAME=VALUE)")
        try:
            result[name] = int(value)
        except ValueError:
            raise CompileError(f"Define '{name}' must be an integer, got '{value}'")
    return result


def default_output(source_path: Optional[str]) -> str:
    """hello.eva -> hello.ll; inline programs go to out.ll"""
    if source_path is None:
        return "out.ll"
    return os.path.splitext(source_path)[0] + ".ll"


def compile_eva(source: str, output_path: str = None, is_file: bool = True,
                emit_ir: bool = False, emit_ast: bool = False,
                defines: Optional[Dict[str, int]] = None):
    """
    Compile an Eva program.

    Args:
        source: Path to .eva source file, or program text if is_file is False
        output_path: .ll writes IR, .o writes an object file, anything else links
        is_file: Whether source is a path
        emit_ir: Print LLVM IR instead of writing output
        emit_ast: Print AST instead of compiling
        defines: Extra integer globals, in addition to VERSION
    """
    quiet = emit_ir or emit_ast

    if output_path is None:
        output_path = default_output(source if is_file else None)

    if not quiet:
        print(f"Parsing {source if is_file else '<eval>'}...")
    program = parse_file(source) if is_file else parse(source)

    if emit_ast:
        print("\n".join(format_ast(program)))
        return

    if not quiet:
        print("Generating LLVM IR...")
    global_vars = dict(DEFAULT_GLOBALS)
    global_vars.update(defines or {})
    codegen = CodeGenerator(global_vars=global_vars)
    codegen.compile(program)
    llvm_ir = codegen.finalize()

    if emit_ir:
        print(llvm_ir)
        return

    if output_path.endswith(".ll"):
        codegen.serialize(output_path)
        print(f"Successfully compiled to {output_path}")
        return

    # Compile to object file
    obj_path = output_path if output_path.endswith(".o") else output_path + ".o"
    print(f"Compiling to {obj_path}...")
    codegen.compile_to_object(obj_path)

    if output_path.endswith(".o"):
        print(f"Successfully compiled to {obj_path}")
        print(f"To link: clang {obj_path} -o <executable>")
        return

    print(f"Linking to {output_path}...")
    result = subprocess.run(
        ["clang", obj_path, "-o", output_path],
        capture_output=True,
        text=True
    )

    # Clean up object file
    os.remove(obj_path)

    if result.returncode != 0:
        print(f"Linker error: {result.stderr}", file=sys.stderr)
        raise CompileError("Linking failed")

    print(f"Successfully compiled to {output_path}")


def main():
    parser = argparse.ArgumentParser(
        description="Eva Compiler",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s hello.eva                    Compile to hello.ll
  %(prog)s hello.eva -o hello.o         Compile to hello.o (object only)
  %(prog)s hello.eva -o hello           Compile and link to hello
  %(prog)s hello.eva --emit-ir          Print LLVM IR
  %(prog)s hello.eva --emit-ast         Print AST
  %(prog)s -e '(printf "%%d" VERSION)'   Compile program text
  %(prog)s hello.eva -D DEBUG=1         Add a global DEBUG = 1
        """
    )

    parser.add_argument("source", help="Source file (.eva), or program text with -e")
    parser.add_argument("-o", "--output",
                        help="Output file (default: source with .ll, or out.ll)")
    parser.add_argument("-e", "--eval", action="store_true",
                        help="Treat SOURCE as program text")
    parser.add_argument("--emit-ir", action="store_true",
                        help="Print LLVM IR to stdout")
    parser.add_argument("--emit-ast", action="store_true",
                        help="Print AST to stdout")
    parser.add_argument("-D", "--define", action="append", default=[],
                        metavar="NAME=VALUE",
                        help="Define an integer global (repeatable)")

    args = parser.parse_args()

    try:
        compile_eva(
            args.source,
            args.output,
            is_file=not args.eval,
            emit_ir=args.emit_ir,
            emit_ast=args.emit_ast,
            defines=parse_defines(args.define)
        )
    except CompileError as e:
        print(f"Compilation failed: {e}", file=sys.stderr)
        sys.exit(1)
    except OSError as e:
        print(f"Compilation failed: {e}", file=sys.stderr)
        sys.exit(1)
    except Exception as e:
        print(f"Internal compiler error: {e}", file=sys.stderr)
        import traceback
        traceback.print_exc()
        sys.exit(2)


if __name__ == "__main__":
    main()
