import datetime
import kopf

# Liveness probe
@kopf.on.probe(id='now')
def get_current_timestamp(**kwargs):
    return datetime.datetime.now(datetime.timezone.utc).isoformat()


@kopf.on.probe(id='pending_reconciles')
def get_pending_reconciles(**kwargs):
    from sro.handlers import specialresource, specialresourcemodule

    return {
        specialresource.SR_KIND: len(specialresource.requests),
        specialresourcemodule.SRM_KIND: len(specialresourcemodule.requests),
    }
