"""Cache-based generator toolchain (CMake)."""

from typing import List, Mapping, Optional

from adapters.base import Adapter


class CMakeAdapter(Adapter):
    """``cmake -S -B``, ``cmake --build``, ``cmake --install``.

    Dependencies passed to ``use`` are also added to ``CMAKE_PREFIX_PATH`` so
    ``find_package`` picks them up.
    """

    def __init__(self, *args, defines: Optional[Mapping[str, str]] = None,
                 generator: Optional[str] = None, build_type: str = "Release", **kwargs):
        super().__init__(*args, **kwargs)
        self.defines = dict(defines or {})
        self.generator = generator
        self.build_type = build_type

    def use(self, install_dir: str) -> None:
        super().use(install_dir)
        self._prepend_path("CMAKE_PREFIX_PATH", install_dir)

    def configure(self) -> bool:
        cmd: List[str] = [
            "cmake",
            "-S", self.source_dir,
            "-B", self.build_dir,
            f"-DCMAKE_INSTALL_PREFIX={self.install_dir}",
            f"-DCMAKE_BUILD_TYPE={self.build_type}",
        ]
        if self.used:
            cmd.append("-DCMAKE_PREFIX_PATH=" + ";".join(self.used))
        if self.generator:
            cmd.extend(["-G", self.generator])
        cmd.extend(f"-D{name}={value}" for name, value in sorted(self.defines.items()))
        return self.run("configure", cmd)

    def build(self) -> bool:
        return self.run("build", ["cmake", "--build", self.build_dir, "--config", self.build_type])

    def install(self) -> bool:
        return self.run("install", ["cmake", "--install", self.build_dir, "--config", self.build_type])
