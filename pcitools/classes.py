"""PCI device class, subclass and programming-interface identifiers.

The enumerations mirror the class section of the ``pci.ids`` database.
:func:`decode_class` turns the three class bytes of a configuration header
into typed values. An unknown class, or an unknown subclass or programming
interface where the table defines them, raises :class:`UnknownClassError`.
"""

from __future__ import annotations

from enum import IntEnum
from typing import NamedTuple, Optional


class UnknownClassError(ValueError):
    """Raised when class bytes do not match any known identifier."""

    def __init__(self, message: str, class_code: int, subclass: int, prog_if: int) -> None:
        super().__init__(message)
        self.class_code = class_code
        self.subclass = subclass
        self.prog_if = prog_if


# Programming interfaces


class MassStorageControllerIDEInterfaceProgIf(IntEnum):
    ISACompatibilityModeOnlyController = 0x00
    PCINativeModeOnlyController = 0x05
    ISACompatibilityModeControllerSupportsBothChannelsSwitchedToPCINativeMode = 0x0A
    PCINativeModeControllerSupportsBothChannelsSwitchedToISACompatibilityMode = 0x0F
    ISACompatibilityModeOnlyControllerSupportsBusMastering = 0x80
    PCINativeModeOnlyControllerSupportsBusMastering = 0x85
    ISACompatibilityModeControllerSupportsBothChannelsSwitchedToPCINativeModeSupportsBusMastering = 0x8A
    PCINativeModeControllerSupportsBothChannelsSwitchedToISACompatibilityModeSupportsBusMastering = 0x8F


class MassStorageControllerATAControllerProgIf(IntEnum):
    ADMASingleStepping = 0x20
    ADMAContinuousOperation = 0x30


class MassStorageControllerSATAControllerProgIf(IntEnum):
    VendorSpecific = 0x00
    AHCI10 = 0x01
    SerialStorageBus = 0x02


class MassStorageControllerSerialAttachedSCSIControllerProgIf(IntEnum):
    SerialStorageBus = 0x01


class MassStorageControllerNonVolatileMemoryControllerProgIf(IntEnum):
    NVMHCI = 0x01
    NVMExpress = 0x02


class MassStorageControllerUniversalFlashStorageControllerProgIf(IntEnum):
    VendorSpecific = 0x00
    UFSHCI = 0x01


class DisplayControllerVGACompatibleControllerProgIf(IntEnum):
    VGAController = 0x00
    _8514Controller = 0x01


class MemoryControllerCXLProgIf(IntEnum):
    CXLMemoryDeviceVendorSpecific = 0x00
    CXLMemoryDeviceCXL2X = 0x10


class BridgePCIBridgeProgIf(IntEnum):
    NormalDecode = 0x00
    SubtractiveDecode = 0x01


class BridgeRACEwayBridgeProgIf(IntEnum):
    TransparentMode = 0x00
    EndpointMode = 0x01


class BridgeSemiTransparentPCIToPCIBridgeProgIf(IntEnum):
    PrimaryBusTowardsHostCPU = 0x40
    SecondaryBusTowardsHostCPU = 0x80


class CommunicationControllerSerialControllerProgIf(IntEnum):
    _8250 = 0x00
    _16450 = 0x01
    _16550 = 0x02
    _16650 = 0x03
    _16750 = 0x04
    _16850 = 0x05
    _16950 = 0x06


class CommunicationControllerParallelControllerProgIf(IntEnum):
    SPP = 0x00
    BiDir = 0x01
    ECP = 0x02
    IEEE1284 = 0x03
    IEEE1284Target = 0xFE


class CommunicationControllerModemProgIf(IntEnum):
    Generic = 0x00
    Hayes16450 = 0x01
    Hayes16550 = 0x02
    Hayes16650 = 0x03
    Hayes16750 = 0x04


class GenericSystemPeripheralPICProgIf(IntEnum):
    _8259 = 0x00
    ISAPIC = 0x01
    EISAPIC = 0x02
    IOAPIC = 0x10
    IOXAPIC = 0x20


class GenericSystemPeripheralDMAControllerProgIf(IntEnum):
    _8237 = 0x00
    ISADMA = 0x01
    EISADMA = 0x02


class GenericSystemPeripheralTimerProgIf(IntEnum):
    _8254 = 0x00
    ISATimer = 0x01
    EISATimers = 0x02
    HPET = 0x03


class GenericSystemPeripheralRTCProgIf(IntEnum):
    Generic = 0x00
    ISARTC = 0x01


class GenericSystemPeripheralTimingCardProgIf(IntEnum):
    TAPTimingCard = 0x01


class InputDeviceControllerGameportControllerProgIf(IntEnum):
    Generic = 0x00
    Extended = 0x10


class SerialBusControllerFireWireIEEE1394ProgIf(IntEnum):
    Generic = 0x00
    OHCI = 0x10


class SerialBusControllerUSBControllerProgIf(IntEnum):
    UHCI = 0x00
    OHCI = 0x10
    EHCI = 0x20
    XHCI = 0x30
    USB4HostInterface = 0x40
    Unspecified = 0x80
    USBDevice = 0xFE


class SerialBusControllerIPMIInterfaceProgIf(IntEnum):
    SMIC = 0x00
    KCS = 0x01
    BTBlockTransfer = 0x02


# Subclasses


class UnclassifiedDeviceSubtype(IntEnum):
    NonVGAUnclassifiedDevice = 0x00
    VGACompatibleUnclassifiedDevice = 0x01
    ImageCoprocessor = 0x05


class MassStorageControllerSubtype(IntEnum):
    SCSIStorageController = 0x00
    IDEInterface = 0x01
    FloppyDiskController = 0x02
    IPIBusController = 0x03
    RAIDBusController = 0x04
    ATAController = 0x05
    SATAController = 0x06
    SerialAttachedSCSIController = 0x07
    NonVolatileMemoryController = 0x08
    UniversalFlashStorageController = 0x09
    MassStorageController = 0x80


class NetworkControllerSubtype(IntEnum):
    EthernetController = 0x00
    TokenRingNetworkController = 0x01
    FDDINetworkController = 0x02
    ATMNetworkController = 0x03
    ISDNController = 0x04
    WorldFipController = 0x05
    PICMGController = 0x06
    InfinibandController = 0x07
    FabricController = 0x08
    NetworkController = 0x80


class DisplayControllerSubtype(IntEnum):
    VGACompatibleController = 0x00
    XGACompatibleController = 0x01
    _3DController = 0x02
    DisplayController = 0x80


class MultimediaControllerSubtype(IntEnum):
    MultimediaVideoController = 0x00
    MultimediaAudioController = 0x01
    ComputerTelephonyDevice = 0x02
    AudioDevice = 0x03
    MultimediaController = 0x80


class MemoryControllerSubtype(IntEnum):
    RAMMemory = 0x00
    FLASHMemory = 0x01
    CXL = 0x02
    MemoryController = 0x80


class BridgeSubtype(IntEnum):
    HostBridge = 0x00
    ISABridge = 0x01
    EISABridge = 0x02
    MicroChannelBridge = 0x03
    PCIBridge = 0x04
    PCMCIABridge = 0x05
    NuBusBridge = 0x06
    CardBusBridge = 0x07
    RACEwayBridge = 0x08
    SemiTransparentPCIToPCIBridge = 0x09
    InfiniBandToPCIHostBridge = 0x0A
    Bridge = 0x80


class CommunicationControllerSubtype(IntEnum):
    SerialController = 0x00
    ParallelController = 0x01
    MultiportSerialController = 0x02
    Modem = 0x03
    GPIBController = 0x04
    SmardCardController = 0x05
    CommunicationController = 0x80


class GenericSystemPeripheralSubtype(IntEnum):
    PIC = 0x00
    DMAController = 0x01
    Timer = 0x02
    RTC = 0x03
    PCIHotPlugController = 0x04
    SDHostController = 0x05
    IOMMU = 0x06
    RCEC = 0x07
    SystemPeripheral = 0x80
    TimingCard = 0x99


class InputDeviceControllerSubtype(IntEnum):
    KeyboardController = 0x00
    DigitizerPen = 0x01
    MouseController = 0x02
    ScannerController = 0x03
    GameportController = 0x04
    InputDeviceController = 0x80


class DockingStationSubtype(IntEnum):
    GenericDockingStation = 0x00
    DockingStation = 0x80


class ProcessorSubtype(IntEnum):
    _386 = 0x00
    _486 = 0x01
    Pentium = 0x02
    Alpha = 0x10
    PowerPC = 0x20
    MIPS = 0x30
    CoProcessor = 0x40


class SerialBusControllerSubtype(IntEnum):
    FireWireIEEE1394 = 0x00
    ACCESSBus = 0x01
    SSA = 0x02
    USBController = 0x03
    FibreChannel = 0x04
    SMBus = 0x05
    InfiniBand = 0x06
    IPMIInterface = 0x07
    SERCOSInterface = 0x08
    CANBUS = 0x09
    SerialBusController = 0x80


class WirelessControllerSubtype(IntEnum):
    IRDAController = 0x00
    ConsumerIRController = 0x01
    RFController = 0x10
    Bluetooth = 0x11
    Broadband = 0x12
    _8021aController = 0x20
    _8021bController = 0x21
    WirelessController = 0x80


class IntelligentControllerSubtype(IntEnum):
    I2O = 0x00


class SatelliteCommunicationsControllerSubtype(IntEnum):
    SatelliteTVController = 0x01
    SatelliteAudioCommunicationController = 0x02
    SatelliteVoiceCommunicationController = 0x03
    SatelliteDataCommunicationController = 0x04


class EncryptionControllerSubtype(IntEnum):
    NetworkAndComputingEncryptionDevice = 0x00
    EntertainmentEncryptionDevice = 0x10
    EncryptionController = 0x80


class SignalProcessingControllerSubtype(IntEnum):
    DPIOModule = 0x00
    PerformanceCounters = 0x01
    CommunicationSynchronizer = 0x10
    SignalProcessingManagement = 0x20
    SignalProcessingController = 0x80


class ProcessingAcceleratorsSubtype(IntEnum):
    ProcessingAccelerators = 0x00
    SNIASmartDataAcceleratorInterfaceSDXIController = 0x01


# Device classes


class PciDeviceClass(IntEnum):
    UnclassifiedDevice = 0x00
    MassStorageController = 0x01
    NetworkController = 0x02
    DisplayController = 0x03
    MultimediaController = 0x04
    MemoryController = 0x05
    Bridge = 0x06
    CommunicationController = 0x07
    GenericSystemPeripheral = 0x08
    InputDeviceController = 0x09
    DockingStation = 0x0A
    Processor = 0x0B
    SerialBusController = 0x0C
    WirelessController = 0x0D
    IntelligentController = 0x0E
    SatelliteCommunicationsController = 0x0F
    EncryptionController = 0x10
    SignalProcessingController = 0x11
    ProcessingAccelerators = 0x12
    NonEssentialInstrumentation = 0x13
    Coprocessor = 0x40
    UnassignedClass = 0xFF


SUBTYPES: dict[PciDeviceClass, type[IntEnum]] = {
    PciDeviceClass.UnclassifiedDevice: UnclassifiedDeviceSubtype,
    PciDeviceClass.MassStorageController: MassStorageControllerSubtype,
    PciDeviceClass.NetworkController: NetworkControllerSubtype,
    PciDeviceClass.DisplayController: DisplayControllerSubtype,
    PciDeviceClass.MultimediaController: MultimediaControllerSubtype,
    PciDeviceClass.MemoryController: MemoryControllerSubtype,
    PciDeviceClass.Bridge: BridgeSubtype,
    PciDeviceClass.CommunicationController: CommunicationControllerSubtype,
    PciDeviceClass.GenericSystemPeripheral: GenericSystemPeripheralSubtype,
    PciDeviceClass.InputDeviceController: InputDeviceControllerSubtype,
    PciDeviceClass.DockingStation: DockingStationSubtype,
    PciDeviceClass.Processor: ProcessorSubtype,
    PciDeviceClass.SerialBusController: SerialBusControllerSubtype,
    PciDeviceClass.WirelessController: WirelessControllerSubtype,
    PciDeviceClass.IntelligentController: IntelligentControllerSubtype,
    PciDeviceClass.SatelliteCommunicationsController: SatelliteCommunicationsControllerSubtype,
    PciDeviceClass.EncryptionController: EncryptionControllerSubtype,
    PciDeviceClass.SignalProcessingController: SignalProcessingControllerSubtype,
    PciDeviceClass.ProcessingAccelerators: ProcessingAcceleratorsSubtype,
}

_MS = MassStorageControllerSubtype
_GSP = GenericSystemPeripheralSubtype
_SB = SerialBusControllerSubtype
_CC = CommunicationControllerSubtype

PROG_IFS: dict[tuple[PciDeviceClass, IntEnum], type[IntEnum]] = {
    (PciDeviceClass.MassStorageController, _MS.IDEInterface): MassStorageControllerIDEInterfaceProgIf,
    (PciDeviceClass.MassStorageController, _MS.ATAController): MassStorageControllerATAControllerProgIf,
    (PciDeviceClass.MassStorageController, _MS.SATAController): MassStorageControllerSATAControllerProgIf,
    (PciDeviceClass.MassStorageController, _MS.SerialAttachedSCSIController):
        MassStorageControllerSerialAttachedSCSIControllerProgIf,
    (PciDeviceClass.MassStorageController, _MS.NonVolatileMemoryController):
        MassStorageControllerNonVolatileMemoryControllerProgIf,
    (PciDeviceClass.MassStorageController, _MS.UniversalFlashStorageController):
        MassStorageControllerUniversalFlashStorageControllerProgIf,
    (PciDeviceClass.DisplayController, DisplayControllerSubtype.VGACompatibleController):
        DisplayControllerVGACompatibleControllerProgIf,
    (PciDeviceClass.MemoryController, MemoryControllerSubtype.CXL): MemoryControllerCXLProgIf,
    (PciDeviceClass.Bridge, BridgeSubtype.PCIBridge): BridgePCIBridgeProgIf,
    (PciDeviceClass.Bridge, BridgeSubtype.RACEwayBridge): BridgeRACEwayBridgeProgIf,
    (PciDeviceClass.Bridge, BridgeSubtype.SemiTransparentPCIToPCIBridge):
        BridgeSemiTransparentPCIToPCIBridgeProgIf,
    (PciDeviceClass.CommunicationController, _CC.SerialController):
        CommunicationControllerSerialControllerProgIf,
    (PciDeviceClass.CommunicationController, _CC.ParallelController):
        CommunicationControllerParallelControllerProgIf,
    (PciDeviceClass.CommunicationController, _CC.Modem): CommunicationControllerModemProgIf,
    (PciDeviceClass.GenericSystemPeripheral, _GSP.PIC): GenericSystemPeripheralPICProgIf,
    (PciDeviceClass.GenericSystemPeripheral, _GSP.DMAController):
        GenericSystemPeripheralDMAControllerProgIf,
    (PciDeviceClass.GenericSystemPeripheral, _GSP.Timer): GenericSystemPeripheralTimerProgIf,
    (PciDeviceClass.GenericSystemPeripheral, _GSP.RTC): GenericSystemPeripheralRTCProgIf,
    (PciDeviceClass.GenericSystemPeripheral, _GSP.TimingCard):
        GenericSystemPeripheralTimingCardProgIf,
    (PciDeviceClass.InputDeviceController, InputDeviceControllerSubtype.GameportController):
        InputDeviceControllerGameportControllerProgIf,
    (PciDeviceClass.SerialBusController, _SB.FireWireIEEE1394):
        SerialBusControllerFireWireIEEE1394ProgIf,
    (PciDeviceClass.SerialBusController, _SB.USBController): SerialBusControllerUSBControllerProgIf,
    (PciDeviceClass.SerialBusController, _SB.IPMIInterface): SerialBusControllerIPMIInterfaceProgIf,
}


class DecodedClass(NamedTuple):
    """A device class with its subclass and programming interface, where defined."""

    device_class: PciDeviceClass
    subclass: Optional[IntEnum] = None
    prog_if: Optional[IntEnum] = None


def decode_class(class_code: int, subclass: int, prog_if: int) -> DecodedClass:
    """Decode the class, subclass and programming-interface bytes.

    The subclass is decoded only for classes that define subclasses, and the
    programming interface only for subclasses that define them; other bytes
    are ignored.
    """
    try:
        device_class = PciDeviceClass(class_code)
    except ValueError:
        raise UnknownClassError(
            f"unknown PCI class code 0x{class_code:02X}", class_code, subclass, prog_if
        ) from None

    subtype_enum = SUBTYPES.get(device_class)
    if subtype_enum is None:
        return DecodedClass(device_class)
    try:
        sub = subtype_enum(subclass)
    except ValueError:
        raise UnknownClassError(
            f"unknown subclass 0x{subclass:02X} for {device_class.name}",
            class_code, subclass, prog_if,
        ) from None

    prog_if_enum = PROG_IFS.get((device_class, sub))
    if prog_if_enum is None:
        return DecodedClass(device_class, sub)
    try:
        interface = prog_if_enum(prog_if)
    except ValueError:
        raise UnknownClassError(
            f"unknown programming interface 0x{prog_if:02X} for "
            f"{device_class.name}/{sub.name}",
            class_code, subclass, prog_if,
        ) from None
    return DecodedClass(device_class, sub, interface)


def default_class() -> DecodedClass:
    """The class assigned to a device whose class is not known."""
    return DecodedClass(PciDeviceClass.UnassignedClass)