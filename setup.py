import os
from setuptools import setup, find_namespace_packages
from setuptools.command.build_py import build_py as _build

CLASSIFIERS = [
    'Operating System :: POSIX',
    'Operating System :: MacOS :: MacOS X',
    'Intended Audience :: Developers',
    'Programming Language :: Python',
    'Programming Language :: Python :: 3',
    'Topic :: Internet :: WWW/HTTP :: WSGI :: Application',
    'Topic :: System :: Systems Administration'
]

def get_version():
    out = "dev"
    pkgdir = os.environ.get('PACKAGE_DIR', os.path.dirname(os.path.abspath(__file__)))
    versfile = os.path.join(pkgdir, 'VERSION')
    if os.path.exists(versfile):
        with open(versfile) as fd:
            parts = fd.readline().split()
        if len(parts) > 0:
            out = parts[-1]
    else:
        out = "(unknown)"
    return out

def write_version_mod(version):
    pkgroot = 'bundlerest'
    for pkg in [f for f in os.listdir(pkgroot) \
                  if not f.startswith('_') and not f.startswith('.')
                     and os.path.isdir(os.path.join(pkgroot, f))]:
        print("setting version for bundlerest."+pkg)
        versmodf = os.path.join(pkgroot, pkg, "version.py")
        with open(versmodf, 'w') as fd:
            fd.write('"""')
            fd.write("""
An identification of the subsystem version.  Note that this module file gets 
(over-) written by the build process.  
""")
            fd.write('"""\n\n')
            fd.write('__version__ = "')
            fd.write(version)
            fd.write('"\n')

class build(_build):

    def run(self):
        write_version_mod(get_version())
        _build.run(self)

setup(name='bundlerest',
      version=get_version(),
      description="bundlerest: a REST interface and client for managing a bundle runtime",
      scripts=[ 'scripts/bundlerest-uwsgi.py' ],
      packages=find_namespace_packages(include=['bundlerest', 'bundlerest.*']),
      install_requires=[ "requests", "lxml", "PyYAML", "PyJWT" ],
      extras_require={ "testing": [ "pytest" ] },
      python_requires=">=3.10",
      cmdclass={'build_py': build},
      classifiers=CLASSIFIERS,
      zip_safe=False
)
