"""
Demo application: one storage stack, one API that needs its endpoint.

    stackhost publish demo/apphost.py:build
    stackhost up demo/apphost.py:build --backend inline \
        --set Pulumi:Stacks:dev:location=westeurope
"""

from stackhost import ConfigValue, ProjectResource, add_stack, application


def storage():
    # Runs inside the backend. With the pulumi backend this is where
    # cloud resources are declared; the returned mapping is exported.
    return {
        "BlobEndpoint": "https://demo.blob.core.windows.net/",
        "AccountName": "demo",
    }


def build(configuration):
    with application("demo", configuration=configuration) as app:
        dev = add_stack(
            app, "dev", storage,
            configure=lambda c: c.setdefault("sku", ConfigValue("Standard_LRS")),
        )

        ProjectResource("api", command=["uvicorn", "api:app"]) \
            .with_environment("StorageEndpoint", dev.get_output("BlobEndpoint")) \
            .with_environment("LOG_LEVEL", "info")

    return app
