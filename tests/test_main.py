"""
Tests for the main entry point and CLI commands.

测试主入口文件和CLI命令的功能。
"""

import os
import sys
import tempfile
import textwrap
from pathlib import Path
from typing import Generator
from unittest.mock import Mock, patch

import pytest
import typer
import yaml
from typer.testing import CliRunner

from tether.application.application import Application
from tether.infrastructure.config.models import ApplicationConfig
from tether.main import cli, load_application

APP_MODULE = textwrap.dedent('''
    from tether import Application

    class Greeter:
        def start(self):
            pass

    application = Application({"name": "sample"})
    application.life_cycle_observer(Greeter)

    def create_app(config):
        app = Application(config)
        app.bind("greeting").to("hello")
        return app

    def create_default():
        return Application({"name": "from-factory"})

    not_an_app = 42
''')


@pytest.fixture
def app_dir() -> Generator[str, None, None]:
    """创建包含示例应用模块的临时目录"""
    with tempfile.TemporaryDirectory() as temp_dir:
        module_name = f"sample_app_{os.getpid()}"
        Path(temp_dir, f"{module_name}.py").write_text(APP_MODULE, encoding="utf-8")
        yield temp_dir
        sys.modules.pop(module_name, None)
        resolved = str(Path(temp_dir).resolve())
        if resolved in sys.path:
            sys.path.remove(resolved)


def _module() -> str:
    return f"sample_app_{os.getpid()}"


class TestLoadApplication:
    """测试应用加载"""

    def test_load_instance(self, app_dir: str) -> None:
        """测试加载应用实例"""
        app = load_application(f"{_module()}:application", ApplicationConfig(), app_dir)

        assert isinstance(app, Application)
        assert app.name == "sample"

    def test_load_factory_with_config(self, app_dir: str) -> None:
        """测试使用配置调用工厂函数"""
        config = ApplicationConfig(name="configured")

        app = load_application(f"{_module()}:create_app", config, app_dir)

        assert app.name == "configured"
        assert app.config is config
        assert app.get_sync("greeting") == "hello"

    def test_load_factory_without_arguments(self, app_dir: str) -> None:
        """测试无参数工厂函数"""
        app = load_application(f"{_module()}:create_default", ApplicationConfig(), app_dir)

        assert app.name == "from-factory"

    def test_invalid_references(self, app_dir: str) -> None:
        """测试无效的应用引用"""
        with pytest.raises(typer.BadParameter):
            load_application(_module(), ApplicationConfig(), app_dir)
        with pytest.raises(typer.BadParameter):
            load_application(f"{_module()}:missing", ApplicationConfig(), app_dir)
        with pytest.raises(typer.BadParameter):
            load_application(f"{_module()}:not_an_app", ApplicationConfig(), app_dir)
        with pytest.raises(typer.BadParameter):
            load_application("no_such_module_xyz:app", ApplicationConfig(), app_dir)


class TestMainCLI:
    """测试主CLI功能"""

    def setup_method(self) -> None:
        """测试前设置"""
        self.runner = CliRunner()

    def test_cli_help_command(self) -> None:
        """测试CLI帮助命令"""
        result = self.runner.invoke(cli, ["--help"])

        assert result.exit_code == 0
        assert "lifecycle" in result.output

    @patch('tether.main.setup_logging')
    @patch('tether.main.asyncio.run')
    def test_run_command(self, mock_run: Mock, mock_setup_logging: Mock, app_dir: str) -> None:
        """测试运行命令"""
        result = self.runner.invoke(cli, [
            "run", f"{_module()}:application", "--app-dir", app_dir, "--debug"
        ])

        assert result.exit_code == 0, result.output
        mock_setup_logging.assert_called_once()
        assert mock_setup_logging.call_args[0][0].level == "DEBUG"
        mock_run.assert_called_once()
        mock_run.call_args[0][0].close()

    @patch('tether.main.setup_logging')
    @patch('tether.main.asyncio.run')
    def test_run_command_failure(self, mock_run: Mock, mock_setup_logging: Mock, app_dir: str) -> None:
        """测试运行失败时退出码为1"""
        def fail(coro: object) -> None:
            coro.close()  # type: ignore[attr-defined]
            raise RuntimeError("boom")

        mock_run.side_effect = fail

        result = self.runner.invoke(cli, ["run", f"{_module()}:application", "--app-dir", app_dir])

        assert result.exit_code == 1

    def test_inspect_command(self, app_dir: str) -> None:
        """测试查看绑定命令"""
        result = self.runner.invoke(cli, ["inspect", f"{_module()}:application", "--app-dir", app_dir])

        assert result.exit_code == 0, result.output
        data = yaml.safe_load(result.output)
        assert data["name"] == "sample"
        assert "lifeCycleObservers.Greeter" in data["bindings"]
        assert data["bindings"]["lifeCycleObservers.Greeter"]["scope"] == "singleton"

    def test_init_config_command(self) -> None:
        """测试生成默认配置命令"""
        with tempfile.TemporaryDirectory() as temp_dir:
            output = str(Path(temp_dir) / "config.yaml")

            result = self.runner.invoke(cli, ["init-config", "--output", output])

            assert result.exit_code == 0
            assert "Default configuration saved" in result.output
            with open(output, 'r', encoding='utf-8') as f:
                assert yaml.safe_load(f)["name"] == "tether"

    def test_init_config_invalid_format(self) -> None:
        """测试不支持的配置格式"""
        result = self.runner.invoke(cli, ["init-config", "--format", "ini"])

        assert result.exit_code == 1

    def test_validate_config_command(self) -> None:
        """测试验证配置命令"""
        with tempfile.NamedTemporaryFile(mode='w', suffix='.yaml', delete=False) as f:
            yaml.safe_dump({"name": "checked", "lifecycle": {"orders": ["db", "server"]}}, f)
            path = f.name

        try:
            result = self.runner.invoke(cli, ["validate-config", path])
        finally:
            os.unlink(path)

        assert result.exit_code == 0
        assert "is valid" in result.output
        assert "db, server" in result.output

    def test_validate_config_invalid(self) -> None:
        """测试验证无效配置"""
        with tempfile.NamedTemporaryFile(mode='w', suffix='.yaml', delete=False) as f:
            yaml.safe_dump({"logging": {"level": "LOUD"}}, f)
            path = f.name

        try:
            result = self.runner.invoke(cli, ["validate-config", path])
        finally:
            os.unlink(path)

        assert result.exit_code == 1
