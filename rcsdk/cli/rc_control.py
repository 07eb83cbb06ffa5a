#!/usr/bin/env python3
"""
遥控器主从协同命令行工具

用法:
    rc-control --sn <gateway_sn> --rc-id <id> --username <user> --password <pass>

功能:
    1. 对频进入/退出
    2. 主从角色设置、主控搜索、加入/离开主控
    3. 主控侧从机管理与云台控制权审批
    4. 从机侧申请云台控制权
    5. 交互式命令界面
"""
import argparse
import sys
from rich.console import Console
from rich.prompt import Prompt, Confirm
from rich.panel import Panel
from rich.table import Table

from .. import config
from ..core import MQTTClient
from ..models import RCIdentity, RCMode
from ..remote_controller import RemoteController

console = Console()

COMMANDS = {
    'help': '显示帮助信息',
    'status': '显示本机状态',
    'role': '查询/设置主从角色',
    'pair': '进入对频模式',
    'unpair': '退出对频模式',
    'search': '开始/停止搜索主控',
    'masters': '查看已发现的主控',
    'join': '加入主控',
    'leave': '离开已加入的主控',
    'slaves': '刷新并查看从机列表',
    'kick': '移除从机',
    'request': '向主控申请云台控制权',
    'agree': '同意从机的云台请求',
    'deny': '拒绝从机的云台请求',
    'revoke': '收回云台控制权',
    'name': '设置遥控器名称',
    'password': '设置遥控器密码',
    'quit': '退出程序',
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description='DJI 遥控器主从协同工具',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
示例:
  rc-control --sn 9N9CN2J0012CXY --rc-id 100 --username dji --password dji
  rc-control --sn 9N9CN2J0012CXY --rc-id 42 --host 172.20.10.2 --gimbal-timeout 15
        """
    )
    parser.add_argument('--sn', default=config.GATEWAY_SN,
                        help=f'网关序列号 (默认: {config.GATEWAY_SN})')
    parser.add_argument('--rc-id', type=int, default=config.LOCAL_RC_ID,
                        help=f'本机遥控器 ID (默认: {config.LOCAL_RC_ID})')
    parser.add_argument('--host', default=config.MQTT_CONFIG['host'],
                        help=f"MQTT 服务器地址 (默认: {config.MQTT_CONFIG['host']})")
    parser.add_argument('--port', type=int, default=config.MQTT_CONFIG['port'],
                        help=f"MQTT 端口 (默认: {config.MQTT_CONFIG['port']})")
    parser.add_argument('--username', default=config.MQTT_CONFIG['username'], help='MQTT 用户名')
    parser.add_argument('--password', default=config.MQTT_CONFIG['password'], help='MQTT 密码')
    parser.add_argument('--timeout', type=float, default=config.SERVICE_TIMEOUT,
                        help=f'服务调用超时秒 (默认: {config.SERVICE_TIMEOUT})')
    parser.add_argument('--gimbal-timeout', type=float, default=config.GIMBAL_REQUEST_TIMEOUT,
                        help=f'云台请求等待答复秒 (默认: {config.GIMBAL_REQUEST_TIMEOUT})')
    return parser


def main(argv=None):
    """主函数 - 遥控器工具入口"""
    args = build_parser().parse_args(argv)

    mqtt_config = {
        'host': args.host,
        'port': args.port,
        'username': args.username,
        'password': args.password,
    }

    print_welcome(args.sn, args.host, args.rc_id)

    mqtt_client = MQTTClient(args.sn, mqtt_config)
    rc = None

    try:
        mqtt_client.connect()
        rc = RemoteController(mqtt_client, local_id=args.rc_id, timeout=args.timeout,
                              gimbal_timeout=args.gimbal_timeout)
        rc.on_gimbal_request(announce_gimbal_request)
        rc.start()

        try:
            role, is_connected = rc.get_role()
            console.print(f"[dim]当前角色: {role.name} (已连接: {is_connected})[/dim]")
        except Exception as e:
            console.print(f"[yellow]读取角色失败: {e}[/yellow]")

        console.rule("[bold green]✓ 遥控器就绪[/bold green]")
        console.print("[dim]输入命令进行控制，输入 'help' 查看帮助，输入 'quit' 退出[/dim]\n")

        interactive_control(rc)

    except KeyboardInterrupt:
        console.print("\n[yellow]检测到 Ctrl+C 中断信号[/yellow]")

    except Exception as e:
        console.print(f"\n[red]✗ 发生错误: {e}[/red]")
        return 1

    finally:
        console.print("\n")
        console.rule("[bold cyan]清理资源[/bold cyan]")
        if rc is not None:
            rc.close()
        mqtt_client.disconnect()
        console.print("[green]✓ 已安全退出[/green]")

    return 0


def print_welcome(sn: str, host: str, rc_id: int):
    """打印欢迎界面"""
    welcome_text = f"""
[bold cyan]DJI 遥控器主从协同工具[/bold cyan]

[bold]连接信息:[/bold]
  • 网关 SN: [yellow]{sn}[/yellow]
  • MQTT 地址: [yellow]{host}[/yellow]
  • 本机 ID: [yellow]{rc_id}[/yellow]
"""
    console.print(Panel(welcome_text, border_style="cyan"))


def announce_gimbal_request(slave: RCIdentity):
    console.print(Panel(
        f"从机 [yellow]{slave.id}[/yellow] ({slave.name or '未命名'}) 请求云台控制权\n"
        f"输入 [cyan]agree[/cyan] / [cyan]deny[/cyan] 答复",
        title="云台请求", border_style="magenta"))


def interactive_control(rc: RemoteController):
    """交互式控制界面，单条命令出错不退出"""
    handlers = {
        'status': handle_status,
        'role': handle_role,
        'pair': lambda r: r.enter_pairing(),
        'unpair': lambda r: r.exit_pairing(),
        'search': handle_search,
        'masters': handle_masters,
        'join': handle_join,
        'leave': handle_leave,
        'slaves': handle_slaves,
        'kick': handle_kick,
        'request': handle_request,
        'agree': lambda r: handle_response(r, True),
        'deny': lambda r: handle_response(r, False),
        'revoke': handle_revoke,
        'name': lambda r: r.set_rc_name(Prompt.ask("  新名称 (最多 6 字符)")),
        'password': lambda r: r.set_rc_password(Prompt.ask("  新密码 (4 位数字)", password=True)),
    }

    while True:
        console.print()
        cmd = Prompt.ask("[bold cyan]›[/bold cyan]", default="help").strip().lower()

        if cmd == 'help':
            show_help(COMMANDS)

        elif cmd == 'quit':
            if Confirm.ask("[yellow]确认退出?[/yellow]", default=True):
                break

        elif cmd == '':
            continue

        elif cmd in handlers:
            run_command(cmd, handlers[cmd], rc)

        else:
            console.print(f"[red]✗ 未知命令: '{cmd}'[/red] (输入 'help' 查看帮助)")


def run_command(name: str, handler, rc: RemoteController) -> bool:
    """执行一条命令；任何异常只打印不退出"""
    try:
        handler(rc)
        return True
    except ValueError as e:
        console.print(f"[red]✗ 参数错误: {e}[/red]")
    except Exception as e:
        console.print(f"[red]✗ {name} 失败: {e}[/red]")
    return False


def show_help(commands: dict):
    """显示帮助信息"""
    table = Table(title="可用命令", show_header=True, header_style="bold cyan")
    table.add_column("命令", style="cyan", width=12)
    table.add_column("说明", style="white")

    for cmd, desc in commands.items():
        table.add_row(cmd, desc)

    console.print(table)


def show_identities(title: str, identities):
    table = Table(title=title, show_header=True, header_style="bold cyan")
    table.add_column("ID", style="cyan")
    table.add_column("名称")
    table.add_column("信号", justify="right")
    table.add_column("云台", justify="center")

    for identity in identities:
        table.add_row(
            str(identity.id),
            identity.name or "-",
            str(identity.signal_quality),
            "✓" if identity.permissions.has_gimbal_control else "",
        )

    console.print(table)


def handle_status(rc: RemoteController):
    table = Table(title="本机状态", show_header=False)
    table.add_column("项", style="cyan")
    table.add_column("值")
    table.add_row("ID", str(rc.local_id))
    table.add_row("角色", rc.role.name)
    table.add_row("对频", rc.pairing_state.name)
    table.add_row("云台控制", "✓" if rc.permissions_of().has_gimbal_control else "✗")
    master = rc.get_joined_master_info()
    table.add_row("已加入主控", str(master.id) if master else "-")
    table.add_row("从机", ", ".join(str(s.id) for s in rc.attached_slaves()) or "-")
    pending = [str(p.requester_id) for p in rc.arbiter.pending_requests()]
    table.add_row("未决云台请求", ", ".join(pending) or "-")
    console.print(table)


def handle_role(rc: RemoteController):
    role, is_connected = rc.get_role()
    console.print(f"  当前角色: [yellow]{role.name}[/yellow] (已连接: {is_connected})")
    choice = Prompt.ask("  设置为", choices=["master", "slave", "normal", "keep"], default="keep")
    if choice == "keep":
        return
    detached = rc.set_role(RCMode[choice.upper()])
    if detached:
        console.print(f"[yellow]已级联移除从机: {detached}[/yellow]")


def handle_search(rc: RemoteController):
    if rc.session.search_active:
        rc.stop_master_search()
    else:
        rc.start_master_search()


def handle_masters(rc: RemoteController):
    show_identities("已发现的主控", rc.get_master_search_results())


def handle_join(rc: RemoteController):
    master_id = int(Prompt.ask("  主控 ID"))
    name = Prompt.ask("  主控名称")
    password = Prompt.ask("  主控密码", password=True)
    result = rc.join_master(master_id, name, password)
    console.print(f"  加入结果: [yellow]{result.name}[/yellow]")


def handle_leave(rc: RemoteController):
    master = rc.get_joined_master_info()
    if master is None:
        console.print("[yellow]未加入任何主控[/yellow]")
        return
    rc.remove_master(master.id)


def handle_slaves(rc: RemoteController):
    show_identities("从机列表", rc.get_slave_list())


def handle_kick(rc: RemoteController):
    rc.remove_slave(int(Prompt.ask("  从机 ID")))


def handle_request(rc: RemoteController):
    future = rc.request_gimbal_control()
    console.print("[dim]等待主控答复...[/dim]")
    result = future.result(timeout=rc.arbiter.timeout + rc.caller.timeout)
    console.print(f"  云台请求结果: [yellow]{result.name}[/yellow]")


def handle_response(rc: RemoteController, agree: bool):
    pending = rc.arbiter.pending_requests()
    if not pending:
        console.print("[yellow]没有未决的云台请求[/yellow]")
        return
    default = str(pending[0].requester_id)
    requester_id = int(Prompt.ask("  从机 ID", default=default))
    result = rc.respond_to_gimbal_request(requester_id, agree)
    if result is not None:
        console.print(f"  答复结果: [yellow]{result.name}[/yellow]")


def handle_revoke(rc: RemoteController):
    previous = rc.revoke_gimbal_control()
    if previous is None:
        console.print("[yellow]云台控制权本就在主控[/yellow]")


if __name__ == '__main__':
    sys.exit(main())
