import os
import shutil
from setuptools import setup, find_packages
from setuptools.command.install_scripts import install_scripts as InstallScripts

class CustomInstallScripts(InstallScripts):
    def run(self):
        src_main = os.path.join(os.path.dirname(__file__), '__main__.py')

        if not os.path.exists(self.build_dir):
            os.makedirs(self.build_dir)

        target_script = os.path.join(self.build_dir, 'cotacore')

        shutil.copy(src_main, target_script)

        os.chmod(target_script, 0o755)

        self.scripts = [target_script]

        InstallScripts.run(self)

setup(
    name='cotacore',
    version='1.0.0',
    description='A consortium quota calculation library',
    author='Rafael Viotti',
    author_email='viotti@inco.vc',
    url='https://github.com/inco-org/cotacore',
    packages=find_packages(exclude=['tests']),
    py_modules=['cotacore'],
    scripts=['__main__.py'],  # Required to trigger the install_scripts hook
    cmdclass={'install_scripts': CustomInstallScripts},
    classifiers=[
        'Programming Language :: Python :: 3',
        'License :: OSI Approved :: MIT License',
        'Operating System :: OS Independent',
    ],
    install_requires=['typeguard', 'python-dateutil', 'sh2py', 'tabulate'],
    extras_require={'test': ['pytest']},
    python_requires='>=3.10'
)
