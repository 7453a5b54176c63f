from socks5_forwarder.cmd.cli import app

app(prog_name="socks5-forwarder")
