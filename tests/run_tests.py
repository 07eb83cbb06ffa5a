"""
rcsdk 测试入口

    python tests/run_tests.py                 # 全部测试
    python tests/run_tests.py arbiter session # 只跑 test_arbiter.py、test_session.py
    python tests/run_tests.py -q              # 安静模式
"""
import argparse
import sys
import unittest
from pathlib import Path

from rich.console import Console
from rich.table import Table

TESTS_DIR = Path(__file__).parent
sys.path.insert(0, str(TESTS_DIR.parent))

console = Console()


def module_summary(path: Path) -> str:
    """模块文档字符串第一行"""
    for line in path.read_text(encoding='utf-8').splitlines()[1:]:
        if line.strip():
            return line.strip()
    return ""


def select_modules(names):
    modules = sorted(TESTS_DIR.glob('test_*.py'))
    if not names:
        return modules
    wanted = {f"test_{name.replace('test_', '').replace('.py', '')}.py" for name in names}
    return [path for path in modules if path.name in wanted]


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="运行 rcsdk 单元测试")
    parser.add_argument('modules', nargs='*', help="模块名（不含 test_ 前缀）")
    parser.add_argument('-q', '--quiet', action='store_true', help="只输出结果")
    args = parser.parse_args(argv)

    modules = select_modules(args.modules)
    if not modules:
        console.print(f"[red]✗ 没有匹配的测试模块: {' '.join(args.modules)}[/red]")
        return 1

    if not args.quiet:
        table = Table(title="rcsdk 单元测试")
        table.add_column("模块", style="cyan")
        table.add_column("内容")
        for path in modules:
            table.add_row(path.name, module_summary(path))
        console.print(table)

    sys.path.insert(0, str(TESTS_DIR))
    loader = unittest.TestLoader()
    suite = unittest.TestSuite(loader.loadTestsFromName(path.stem) for path in modules)
    result = unittest.TextTestRunner(verbosity=1 if args.quiet else 2).run(suite)
    return 0 if result.wasSuccessful() else 1


if __name__ == '__main__':
    sys.exit(main())
