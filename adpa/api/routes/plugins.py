from fastapi import APIRouter, Request

from adpa.core.plugins import PluginManager, PluginNotFoundError
from adpa.core.responses import success_response

router = APIRouter()


def get_plugin_manager(request: Request) -> PluginManager:
    return request.app.state.plugin_manager


@router.get("")
async def list_plugins(request: Request):
    manager = get_plugin_manager(request)
    return success_response(manager.get_plugin_status(), message="Installed plugins")


@router.get("/summary")
async def plugin_summary(request: Request):
    manager = get_plugin_manager(request)
    return success_response(manager.get_plugin_status_summary())


@router.get("/hooks")
async def list_hooks(request: Request):
    manager = get_plugin_manager(request)
    return success_response(
        {
            "available": manager.get_available_hooks(),
            "statistics": manager.dispatcher.get_statistics(),
        }
    )


@router.get("/{plugin_name}")
async def get_plugin(plugin_name: str, request: Request):
    status = get_plugin_manager(request).get_plugin_status()
    if plugin_name not in status:
        raise PluginNotFoundError(
            f"Plugin {plugin_name} not found", plugin_name=plugin_name
        )
    return success_response(status[plugin_name])


@router.post("/{plugin_name}/enable")
async def enable_plugin(plugin_name: str, request: Request):
    manager = get_plugin_manager(request)
    await manager.enable_plugin(plugin_name)
    return success_response(
        manager.get_plugin_status()[plugin_name],
        message=f"Plugin '{plugin_name}' enabled",
    )


@router.post("/{plugin_name}/disable")
async def disable_plugin(plugin_name: str, request: Request):
    manager = get_plugin_manager(request)
    await manager.disable_plugin(plugin_name)
    return success_response(
        manager.get_plugin_status()[plugin_name],
        message=f"Plugin '{plugin_name}' disabled",
    )


@router.delete("/{plugin_name}")
async def uninstall_plugin(plugin_name: str, request: Request):
    await get_plugin_manager(request).uninstall_plugin(plugin_name)
    return success_response(None, message=f"Plugin '{plugin_name}' uninstalled")
