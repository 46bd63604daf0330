from dataclasses import dataclass

from profman.domain.errors import ProfmanError


@dataclass
class AdapterError(ProfmanError):
    code = "ADAPTER_FAILED"
    rule = "adapter"
    is_execution = True


class ResolutionFailure(AdapterError):
    code = "RESOLUTION_FAILED"
    rule = "resolver.resolve"


class BuildFailure(AdapterError):
    code = "BUILD_FAILED"
    rule = "store.build"


class StoreWriteError(AdapterError):
    code = "STORE_WRITE_FAILED"
    rule = "store.add"


class MergeConflict(AdapterError):
    code = "MERGE_CONFLICT"
    rule = "environment.merge"


class PublishError(AdapterError):
    code = "PUBLISH_FAILED"
    rule = "profile.publish"


class EnvironmentBuildError(AdapterError):
    code = "ENVIRONMENT_BUILD_FAILED"
    rule = "environment.build"
